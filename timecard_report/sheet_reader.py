"""
Workbook decoding, column validation and row normalization.

This module contains:
 - Workbook loading (openpyxl, path or in-memory bytes)
 - Header canonicalization through an alias table
 - Per-sheet validation and row extraction into NormalizedRecord objects
"""

import io
import logging
import os
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from openpyxl import load_workbook

from timecard_report.time_parser import (
    cell_to_text,
    is_adjustment_record,
    parse_date,
    parse_delta,
)


class WorkbookReadError(Exception):
    """Raised when the input workbook cannot be read or decoded."""


REQUIRED_COLUMNS = ["Colaborador", "ID", "Classificacao", "Diferenca"]
OPTIONAL_COLUMNS = ["Gestor", "Data", "Dia", "Entrada", "Intervalo", "Retorno", "Saida"]

COLUMN_ALIASES: Dict[str, List[str]] = {
    "Colaborador": ["colaborador", "nome", "funcionario", "funcionário", "employee"],
    "ID": ["id", "codigo", "código", "matricula", "matrícula"],
    "Classificacao": ["classificacao", "classificação", "tipo", "type", "status"],
    "Diferenca": ["diferenca", "diferença", "diff", "delta"],
}


def normalize_text(value: str) -> str:
    """Trim, strip diacritics and case-fold."""
    value = unicodedata.normalize("NFD", value.strip())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    return value.casefold()


def _build_alias_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for canonical in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
        lookup[normalize_text(canonical)] = canonical
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            lookup.setdefault(normalize_text(alias), canonical)
    return lookup


_ALIAS_LOOKUP = _build_alias_lookup()


def map_column_name(name: Any) -> str:
    """Return the canonical column name for a header, or the trimmed header itself."""
    text = str(name).strip()
    return _ALIAS_LOOKUP.get(normalize_text(text), text)


def check_required_columns(headers: List[Any]) -> Tuple[bool, List[str]]:
    mapped = {map_column_name(h) for h in headers}
    missing = [col for col in REQUIRED_COLUMNS if col not in mapped]
    return not missing, missing


# -------------------------------
# Workbook container
# -------------------------------
@dataclass
class SheetData:
    """Header row plus data rows of one sheet, as decoded cell values."""
    headers: List[Any]
    # (sheet row number, cell values) for every non-blank data row
    rows: List[Tuple[int, Tuple[Any, ...]]]


@dataclass
class Workbook:
    sheets: Dict[str, SheetData]

    @property
    def sheet_names(self) -> List[str]:
        return list(self.sheets.keys())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _read_sheet(ws) -> SheetData:
    headers: List[Any] = []
    rows: List[Tuple[int, Tuple[Any, ...]]] = []
    for row_number, values in enumerate(ws.iter_rows(values_only=True), start=1):
        if row_number == 1:
            headers = list(values)
            continue
        if all(_is_blank(v) for v in values):
            continue
        rows.append((row_number, tuple(values)))
    return SheetData(headers=headers, rows=rows)


def read_workbook(source: Union[str, bytes, os.PathLike]) -> Workbook:
    """Decode a workbook from a path or raw bytes.

    The whole file is read in one pass; the returned Workbook can be reused to
    import different subsets of its sheets.

    Raises:
        WorkbookReadError: the file is missing, unreadable or not a workbook.
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            wb = load_workbook(io.BytesIO(source), read_only=True, data_only=True)
        else:
            wb = load_workbook(source, read_only=True, data_only=True)
    except FileNotFoundError as e:
        raise WorkbookReadError(f"File not found: {e}") from e
    except Exception as e:
        raise WorkbookReadError(f"Error reading Excel file: {e}") from e

    try:
        sheets = {ws.title: _read_sheet(ws) for ws in wb.worksheets}
    except Exception as e:
        raise WorkbookReadError(f"Error decoding workbook contents: {e}") from e
    finally:
        wb.close()

    logging.info(f"Loaded workbook with {len(sheets)} sheet(s): {list(sheets)}")
    return Workbook(sheets=sheets)


# -------------------------------
# Records and import results
# -------------------------------
@dataclass(frozen=True)
class NormalizedRecord:
    id: str
    colaborador: str
    classificacao: str
    diferenca_raw: str
    delta_minutes: int
    is_missing: bool
    parse_error: bool
    is_ajuste: bool
    source_sheet: str
    row_index: int
    data: Optional[date] = None
    data_raw: Optional[str] = None
    gestor: Optional[str] = None
    dia: Optional[str] = None
    entrada: Optional[str] = None
    intervalo: Optional[str] = None
    retorno: Optional[str] = None
    saida: Optional[str] = None


@dataclass
class SheetInfo:
    name: str
    row_count: int
    has_required_columns: bool
    missing_columns: List[str] = field(default_factory=list)


@dataclass
class ImportResult:
    success: bool
    sheets: List[SheetInfo] = field(default_factory=list)
    records: List[NormalizedRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _optional_text(value: Any) -> Optional[str]:
    text = cell_to_text(value)
    return text or None


def canonical_row(headers: List[Any], values: Tuple[Any, ...]) -> Dict[str, Any]:
    """Map a raw row onto canonical column names; columns without a header are dropped."""
    row: Dict[str, Any] = {}
    for header, value in zip(headers, values):
        if _is_blank(header):
            continue
        row[map_column_name(header)] = value
    return row


def describe_sheet(name: str, sheet: SheetData) -> SheetInfo:
    has_all, missing = check_required_columns([h for h in sheet.headers if not _is_blank(h)])
    return SheetInfo(
        name=name,
        row_count=len(sheet.rows),
        has_required_columns=has_all,
        missing_columns=missing,
    )


def describe_sheets(workbook: Workbook) -> List[SheetInfo]:
    """Sheet picker data: name, row count and column validity for every sheet."""
    return [describe_sheet(name, sheet) for name, sheet in workbook.sheets.items()]


def normalize_row(
    row: Dict[str, Any], sheet_name: str, row_index: int, warnings: List[str]
) -> Optional[NormalizedRecord]:
    """Turn one canonical row into a NormalizedRecord, appending soft issues to warnings.

    Returns None when the row has no ID.
    """
    record_id = cell_to_text(row.get("ID"))
    colaborador = cell_to_text(row.get("Colaborador"))

    if not record_id:
        msg = f"Sheet '{sheet_name}', row {row_index}: empty ID, row skipped"
        logging.warning(msg)
        warnings.append(msg)
        return None

    if not colaborador:
        msg = f"Sheet '{sheet_name}', row {row_index}: empty Colaborador"
        logging.warning(msg)
        warnings.append(msg)

    diferenca_raw = cell_to_text(row.get("Diferenca"))
    delta = parse_delta(row.get("Diferenca"))
    if delta.parse_error:
        msg = f"Sheet '{sheet_name}', row {row_index}: invalid Diferenca format: \"{diferenca_raw}\""
        logging.warning(msg)
        warnings.append(msg)

    data_value = row.get("Data")

    return NormalizedRecord(
        id=record_id,
        colaborador=colaborador,
        classificacao=cell_to_text(row.get("Classificacao")),
        diferenca_raw=diferenca_raw,
        delta_minutes=delta.delta_minutes,
        is_missing=delta.is_missing,
        parse_error=delta.parse_error,
        is_ajuste=is_adjustment_record(row.get("Entrada"), row.get("Intervalo"), row.get("Retorno")),
        source_sheet=sheet_name,
        row_index=row_index,
        data=parse_date(data_value),
        data_raw=_optional_text(data_value),
        gestor=_optional_text(row.get("Gestor")),
        dia=_optional_text(row.get("Dia")),
        entrada=_optional_text(row.get("Entrada")),
        intervalo=_optional_text(row.get("Intervalo")),
        retorno=_optional_text(row.get("Retorno")),
        saida=_optional_text(row.get("Saida")),
    )


def import_sheets(workbook: Workbook, sheet_names: List[str]) -> ImportResult:
    """Validate and normalize the selected sheets.

    Each sheet is checked on its own. The import succeeds only when every
    selected sheet exists and carries the required columns; on failure no
    records are returned, only the collected errors and warnings.
    """
    records: List[NormalizedRecord] = []
    errors: List[str] = []
    warnings: List[str] = []
    sheets: List[SheetInfo] = []

    for sheet_name in sheet_names:
        sheet = workbook.sheets.get(sheet_name)
        if sheet is None:
            msg = f"Sheet '{sheet_name}' not found"
            logging.error(msg)
            errors.append(msg)
            continue

        info = describe_sheet(sheet_name, sheet)
        sheets.append(info)
        if not info.has_required_columns:
            msg = f"Sheet '{sheet_name}': missing required columns: {', '.join(info.missing_columns)}"
            logging.error(msg)
            errors.append(msg)
            continue

        logging.info(f"--- START sheet '{sheet_name}' ({info.row_count} data rows) ---")
        before = len(records)
        for row_index, values in sheet.rows:
            row = canonical_row(sheet.headers, values)
            record = normalize_row(row, sheet_name, row_index, warnings)
            if record is not None:
                records.append(record)
        logging.debug(f"First records of '{sheet_name}': {records[before:before + 2]}")
        logging.info(f"--- END sheet '{sheet_name}': {len(records) - before} record(s) ---")

    success = not errors
    if not success:
        logging.error(f"Import failed with {len(errors)} error(s); discarding {len(records)} record(s)")
        records = []

    return ImportResult(
        success=success,
        sheets=sheets,
        records=records,
        errors=errors,
        warnings=warnings,
    )


def import_all_sheets(workbook: Workbook) -> ImportResult:
    return import_sheets(workbook, workbook.sheet_names)
