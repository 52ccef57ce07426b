# cimawatch/report.py
"""
Turn a DiffResult into ordered report sections for the renderer and the
notifier. Nothing here formats HTML or sends mail.
"""
import datetime
import enum
import os
from dataclasses import dataclass, field
from typing import List, Optional

import pytz

from .classifier import Verdict, classify
from .models import DEFAULT_HOSPITAL_NAME, DiffResult, ShortageRecord

REPORT_TIMEZONE = pytz.timezone(os.getenv("REPORT_TIMEZONE", "Europe/Madrid"))

EMPTY_PLACEHOLDER = "Ninguno"
NO_NAME = "Sin nombre"
NO_END_DATE = "Sin fecha estimada"


class Priority(enum.Enum):
    URGENT = "urgent"
    RESOLVED_ONLY = "resolved-only"
    ROUTINE = "routine"


@dataclass
class DetailEntry:
    code: str
    name: str
    start_date: str
    end_date: str
    observation: str
    verdict: Verdict

    @property
    def critical(self) -> bool:
        return self.verdict is Verdict.CRITICAL


@dataclass
class ResolvedEntry:
    code: str
    name: str


@dataclass
class Section:
    key: str
    title: str
    entries: list = field(default_factory=list)
    placeholder: str = EMPTY_PLACEHOLDER

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass
class ReportMeta:
    hospital_name: str = DEFAULT_HOSPITAL_NAME
    report_date: Optional[datetime.date] = None


@dataclass
class ReportSections:
    hospital_name: str
    report_date: datetime.date
    new: Section
    continuing: Section
    resolved: Section
    priority: Priority
    subject: str

    @property
    def sections(self) -> List[Section]:
        return [self.new, self.continuing, self.resolved]


def today_local() -> datetime.date:
    return datetime.datetime.now(tz=REPORT_TIMEZONE).date()


def format_date(ms: Optional[int]) -> str:
    if ms is None:
        return ""
    try:
        dt = datetime.datetime.fromtimestamp(ms / 1000, tz=pytz.UTC)
    except (OverflowError, OSError, ValueError):
        return ""
    return dt.astimezone(REPORT_TIMEZONE).strftime("%d/%m/%Y")


def _display_code(record: ShortageRecord) -> str:
    code = record.code if record.code not in (None, "") else record.registry_number
    return str(code) if code not in (None, "") else "N/A"


def _detail(record: ShortageRecord) -> DetailEntry:
    return DetailEntry(
        code=_display_code(record),
        name=record.name or NO_NAME,
        start_date=format_date(record.start_date_ms),
        end_date=NO_END_DATE if record.indefinite_end else format_date(record.end_date_ms),
        observation=record.observation or "",
        verdict=classify(record),
    )


def _resolved(record: ShortageRecord) -> ResolvedEntry:
    return ResolvedEntry(code=_display_code(record), name=record.name or NO_NAME)


def priority_for(diff: DiffResult) -> Priority:
    if diff.new_items:
        return Priority.URGENT
    if diff.resolved_items:
        return Priority.RESOLVED_ONLY
    return Priority.ROUTINE


def _plural(n: int, word: str) -> str:
    return word if n == 1 else f"{word}s"


def build_subject(priority: Priority, diff: DiffResult, report_date: datetime.date) -> str:
    day = report_date.strftime("%d/%m/%Y")
    if priority is Priority.URGENT:
        n = len(diff.new_items)
        return (
            f"🚨 CIMA Watch — {n} {_plural(n, 'nuevo')} "
            f"{_plural(n, 'desabastecimiento')} ({day})"
        )
    if priority is Priority.RESOLVED_ONLY:
        n = len(diff.resolved_items)
        return (
            f"✅ CIMA Watch — {n} {_plural(n, 'medicamento')} "
            f"{_plural(n, 'restablecido')} ({day})"
        )
    return f"📊 CIMA Watch — Informe diario ({day})"


def compose(diff: DiffResult, meta: ReportMeta | None = None) -> ReportSections:
    meta = meta or ReportMeta()
    report_date = meta.report_date or today_local()
    priority = priority_for(diff)

    return ReportSections(
        hospital_name=meta.hospital_name or DEFAULT_HOSPITAL_NAME,
        report_date=report_date,
        new=Section(
            key="new",
            title="Nuevos Desabastecimientos",
            entries=[_detail(r) for r in diff.new_items],
        ),
        continuing=Section(
            key="continuing",
            title="Continúan en Desabastecimiento",
            entries=[_detail(r) for r in diff.continuing_items],
        ),
        resolved=Section(
            key="resolved",
            title="Restablecidos",
            entries=[_resolved(r) for r in diff.resolved_items],
        ),
        priority=priority,
        subject=build_subject(priority, diff, report_date),
    )
