# cimawatch/codes.py
"""
National code (CN) normalization.

Every identity comparison in the project (search, catalog matching, catalog
uploads, saved configuration, snapshot diffing) goes through normalize_code.
Upstream feeds mix leading zeros, separators and the cn/nregistro fields, so
raw codes are never compared directly.
"""
from typing import Any

_DIGITS = frozenset("0123456789")


def normalize_code(raw: Any) -> str:
    """Return only the ASCII digits of ``raw``, in order. Never raises."""
    if raw is None or isinstance(raw, bool):
        return ""
    return "".join(ch for ch in str(raw) if ch in _DIGITS)
