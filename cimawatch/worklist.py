# cimawatch/worklist.py
"""
The filtered working list shown to pharmacy staff, plus their per-code
annotations (managed flags and free-text notes).

All state is owned by the caller: options and annotations come in as values
and new values come back out.
"""
from dataclasses import dataclass, field, replace
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Tuple

from .catalog import CatalogMatch, match_catalog
from .classifier import is_critical
from .codes import normalize_code
from .models import ShortageRecord
from .staleness import is_stale, now_epoch_ms


@dataclass(frozen=True)
class ViewOptions:
    query: str = ""
    critical_only: bool = False
    catalog_only: bool = False
    hide_stale: bool = True


@dataclass(frozen=True)
class Annotations:
    managed: FrozenSet[str] = frozenset()
    notes: Dict[str, str] = field(default_factory=dict)


def matches_query(record: ShortageRecord, query: str) -> bool:
    trimmed = (query or "").strip()
    if not trimmed:
        return True

    if record.name and trimmed.lower() in record.name.lower():
        return True

    for raw in (record.registry_number, record.code):
        if raw not in (None, "") and str(raw).startswith(trimmed):
            return True

    digits = normalize_code(trimmed)
    return bool(digits) and record.normalized_code.startswith(digits)


def build_working_view(
    records: Iterable[ShortageRecord],
    catalog: AbstractSet[str],
    options: ViewOptions | None = None,
    now_ms: int | None = None,
) -> List[CatalogMatch]:
    options = options or ViewOptions()
    if now_ms is None:
        now_ms = now_epoch_ms()

    out: List[CatalogMatch] = []
    for match in match_catalog(records, catalog):
        rec = match.record
        if options.hide_stale and is_stale(rec, now_ms):
            continue
        if not matches_query(rec, options.query):
            continue
        if options.catalog_only and not match.in_catalog:
            continue
        if options.critical_only and not is_critical(rec):
            continue
        out.append(match)
    return out


def toggle_managed(annotations: Annotations, code: str) -> Annotations:
    code = normalize_code(code)
    if not code:
        return annotations
    managed = set(annotations.managed)
    if code in managed:
        managed.remove(code)
    else:
        managed.add(code)
    return replace(annotations, managed=frozenset(managed))


def set_note(annotations: Annotations, code: str, text: str | None) -> Annotations:
    code = normalize_code(code)
    if not code:
        return annotations
    notes = dict(annotations.notes)
    if not text or not text.strip():
        notes.pop(code, None)
    else:
        notes[code] = text
    return replace(annotations, notes=notes)


def prune_annotations(
    annotations: Annotations, active_codes: Iterable[str]
) -> Tuple[Annotations, int]:
    """
    Drop managed flags and notes for codes no longer in the shortage list.
    Returns the new annotations and how many entries were removed.
    """
    active = {normalize_code(c) for c in active_codes}
    managed = frozenset(c for c in annotations.managed if c in active)
    notes = {c: t for c, t in annotations.notes.items() if c in active}
    removed = (len(annotations.managed) - len(managed)) + (
        len(annotations.notes) - len(notes)
    )
    return Annotations(managed=managed, notes=notes), removed
