# cimawatch/catalog_upload.py
import csv
import zipfile
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .codes import normalize_code
from .logger import get_logger

logger = get_logger(__name__)

MIN_CODE_LENGTH = 6
LEGACY_CSV_ENCODING = "cp1252"

MSG_NO_COLUMN = (
    'No pude encontrar una columna de "CN" o "Código". '
    "Por favor revisa la cabecera de tu archivo."
)
MSG_NO_CODES = (
    "Encontré la columna, pero no pude leer códigos válidos. "
    "Asegúrate de que sean números."
)
MSG_UNREADABLE = (
    "Hubo un error al leer el archivo. "
    "Asegúrate de que es un Excel (.xlsx) o CSV válido."
)


class CatalogError(Exception):
    """Catalog upload rejected; the message is meant for the end user."""


def find_code_column(headers: Iterable[Any]) -> Optional[str]:
    for h in headers:
        if h is None:
            continue
        low = str(h).strip().lower()
        if not low:
            continue
        if (
            low == "cn"
            or "codigo" in low
            or "código" in low
            or "nregistro" in low
            or "national" in low
        ):
            return h
    return None


def _cell_code(value: Any) -> str:
    # Spreadsheet numbers may arrive as floats (654321.0).
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return normalize_code(value)


def extract_catalog(rows: Sequence[Dict[Any, Any]]) -> FrozenSet[str]:
    """
    Normalized national codes from the code column of ``rows``.
    Codes shorter than MIN_CODE_LENGTH digits are discarded.
    """
    headers: List[Any] = list(rows[0].keys()) if rows else []
    column = find_code_column(headers)
    if column is None:
        raise CatalogError(MSG_NO_COLUMN)

    codes = set()
    for row in rows:
        code = _cell_code(row.get(column))
        if len(code) >= MIN_CODE_LENGTH:
            codes.add(code)

    if not codes:
        raise CatalogError(MSG_NO_CODES)

    logger.info("Catalog column '%s': %d valid codes from %d rows.", column, len(codes), len(rows))
    return frozenset(codes)


def _read_csv_rows(path: Path, encoding: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding=encoding, newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel
        return list(csv.DictReader(f, dialect=dialect))


def _read_csv_any_encoding(path: Path) -> List[Dict[str, Any]]:
    """Excel on Spanish Windows saves CSV as cp1252, everything else as UTF-8."""
    try:
        return _read_csv_rows(path, "utf-8-sig")
    except UnicodeDecodeError as e:
        logger.info("Catalog %s is not UTF-8 (%s); retrying as %s.", path, e.reason, LEGACY_CSV_ENCODING)
    return _read_csv_rows(path, LEGACY_CSV_ENCODING)


def _read_xlsx_rows(path: Path) -> List[Dict[Any, Any]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        return [dict(zip(header, values)) for values in rows]
    finally:
        wb.close()


def _read_xls_rows(path: Path) -> List[Dict[Any, Any]]:
    book = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet = book.sheet_by_index(0)
        if sheet.nrows == 0:
            return []
        header = sheet.row_values(0)
        return [dict(zip(header, sheet.row_values(i))) for i in range(1, sheet.nrows)]
    finally:
        book.release_resources()


def load_catalog_file(path: str | Path) -> FrozenSet[str]:
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        if suffix in (".xlsx", ".xlsm"):
            rows = _read_xlsx_rows(path)
        elif suffix == ".xls":
            rows = _read_xls_rows(path)
        elif suffix in (".csv", ".txt"):
            rows = _read_csv_any_encoding(path)
        else:
            raise CatalogError(MSG_UNREADABLE)
    except (
        OSError,
        UnicodeDecodeError,
        csv.Error,
        zipfile.BadZipFile,
        InvalidFileException,
        xlrd.XLRDError,
    ) as e:
        logger.error("Failed to read catalog file %s: %s", path, e)
        raise CatalogError(MSG_UNREADABLE) from e

    return extract_catalog(rows)
