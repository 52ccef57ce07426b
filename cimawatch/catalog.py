# cimawatch/catalog.py
from dataclasses import dataclass
from typing import AbstractSet, Dict, Iterable, List

from .models import ShortageRecord


@dataclass(frozen=True)
class CatalogMatch:
    record: ShortageRecord
    in_catalog: bool


def in_catalog(record: ShortageRecord, catalog: AbstractSet[str]) -> bool:
    code = record.normalized_code
    return bool(code) and code in catalog


def match_catalog(
    records: Iterable[ShortageRecord], catalog: AbstractSet[str]
) -> List[CatalogMatch]:
    """Annotate every record with its catalog membership, keeping order."""
    return [CatalogMatch(rec, in_catalog(rec, catalog)) for rec in records]


def restrict(
    records: Iterable[ShortageRecord], catalog: AbstractSet[str]
) -> List[ShortageRecord]:
    """Records whose normalized code is in the catalog. Empty catalog -> []."""
    return [rec for rec in records if in_catalog(rec, catalog)]


def matched_by_code(
    records: Iterable[ShortageRecord], catalog: AbstractSet[str]
) -> Dict[str, ShortageRecord]:
    """
    normalized code -> record for the catalog subset, in feed order.
    A code seen twice keeps its first position and its last record.
    """
    out: Dict[str, ShortageRecord] = {}
    for rec in records:
        code = rec.normalized_code
        if code and code in catalog:
            out[code] = rec
    return out


def count_matches(records: Iterable[ShortageRecord], catalog: AbstractSet[str]) -> int:
    if not catalog:
        return 0
    return sum(1 for rec in records if in_catalog(rec, catalog))
