"""Spreadsheet codec for viviendas import and export.

Reading accepts ``.xlsx`` (openpyxl, first worksheet) and ``.csv`` (stdlib
csv, UTF-8 with or without BOM).  The first row holds the column headers;
each following non-empty row becomes a ``dict`` keyed by header, with
cells left as the native values the reader produced.

Writing always produces ``.xlsx`` bytes via openpyxl write_only mode.
"""

import csv
import io
import zipfile
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from utils.strings import is_blank

XLSX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)
ACCEPTED_EXTENSIONS = (".xlsx", ".csv")
# Raised by the readers for files that are not a readable sheet
UNREADABLE_FILE_ERRORS = (
    ValueError, KeyError, csv.Error, zipfile.BadZipFile, InvalidFileException,
)

# ── Column vocabulary ─────────────────────────────────────────────────────────

COL_PORTAL = "Portal"
COL_PLANTA = "Planta"
COL_LETRA = "Letra"
COL_TIPOLOGIA = "Tipología"
COL_ORIENTACION = "Orientación"
COL_DORMITORIOS = "Dormitorios"
COL_SUP_TERRAZA = "Superficie Útil + Terraza"
COL_SUP_VIVIENDA = "Superficie Útil Vivienda"
COL_SUP_TERRAZAS = "Superficie Útil Terrazas"
COL_PVP = "PVP Final"
COL_OBSERVACIONES = "Observaciones"
COL_ESTADO = "Estado"
COL_GESTOR = "Gestor"
COL_RESPONSABLE = "Último Responsable"

IMPORT_COLUMNS = [
    COL_PORTAL, COL_PLANTA, COL_LETRA, COL_TIPOLOGIA, COL_ORIENTACION,
    COL_DORMITORIOS, COL_SUP_TERRAZA, COL_SUP_VIVIENDA, COL_SUP_TERRAZAS,
    COL_PVP, COL_OBSERVACIONES, COL_ESTADO, COL_GESTOR, COL_RESPONSABLE,
]

# Decimal columns checked for numeric content, in message order.
DECIMAL_COLUMNS = [COL_SUP_TERRAZA, COL_SUP_VIVIENDA, COL_SUP_TERRAZAS, COL_PVP]

VIVIENDA_EXPORT_COLUMNS = [
    "Código", COL_PORTAL, COL_PLANTA, COL_LETRA, COL_TIPOLOGIA,
    COL_ORIENTACION, COL_DORMITORIOS, COL_SUP_TERRAZA, COL_SUP_VIVIENDA,
    COL_SUP_TERRAZAS, COL_PVP, COL_ESTADO, "Gestor", "Responsable",
    COL_OBSERVACIONES,
]
VIVIENDA_SHEET = "Viviendas"

HISTORIAL_EXPORT_COLUMNS = [
    "Fecha", "Vivienda", "De Estado", "A Estado", "Gestor", "Responsable",
    "Actor", "Motivo",
]
HISTORIAL_SHEET = "Historial"

TEMPLATE_FILENAME = "plantilla_viviendas.xlsx"
TEMPLATE_SHEET = "Plantilla"
TEMPLATE_ROW = {
    COL_PORTAL: "1",
    COL_PLANTA: "0",
    COL_LETRA: "A",
    COL_TIPOLOGIA: "Piso",
    COL_ORIENTACION: "S",
    COL_DORMITORIOS: 2,
    COL_SUP_TERRAZA: 85.5,
    COL_SUP_VIVIENDA: 70.0,
    COL_SUP_TERRAZAS: 15.5,
    COL_PVP: 225000,
    COL_OBSERVACIONES: "",
    COL_ESTADO: "LIBRE",
    COL_GESTOR: "Juan L. Herrero",
    COL_RESPONSABLE: "",
}

Source = Union[str, Path, bytes, BinaryIO]


class UnsupportedFileType(ValueError):
    """Raised for uploads that are neither .xlsx nor .csv."""


def file_kind(filename: str) -> str:
    """Return ``"xlsx"`` or ``"csv"`` for an accepted filename.

    Raises:
        UnsupportedFileType: for any other extension.
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix not in ACCEPTED_EXTENSIONS:
        raise UnsupportedFileType(
            f"Tipo de archivo no soportado: '{suffix or filename}'. "
            f"Use {' o '.join(ACCEPTED_EXTENSIONS)}"
        )
    return suffix[1:]


def _as_bytes(source: Source) -> bytes:
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    if isinstance(source, bytes):
        return source
    return source.read()


def _rows_to_dicts(rows: Iterable[tuple]) -> list[dict[str, Any]]:
    rows = iter(rows)
    header_row = next(rows, None)
    if header_row is None:
        return []
    headers = [str(h).strip() if h is not None else "" for h in header_row]
    records = []
    for row in rows:
        if all(is_blank(v) for v in row):
            continue
        record = {}
        for idx, header in enumerate(headers):
            if not header:
                continue
            value = row[idx] if idx < len(row) else None
            record[header] = "" if value is None else value
        records.append(record)
    return records


def read_xlsx_rows(data: bytes) -> list[dict[str, Any]]:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return _rows_to_dicts(ws.iter_rows(values_only=True))
    finally:
        wb.close()


def read_csv_rows(data: bytes) -> list[dict[str, Any]]:
    text = data.decode("utf-8-sig")
    return _rows_to_dicts(tuple(r) for r in csv.reader(io.StringIO(text)))


def read_rows(source: Source, filename: str | None = None) -> list[dict[str, Any]]:
    """Parse the first sheet of an upload into row dicts.

    Args:
        source: Path, raw bytes or a binary file object.
        filename: Name used to pick the reader; defaults to the path name.

    Returns:
        One dict per non-empty data row, keyed by the header row. Missing
        cells are ``""``.
    """
    if filename is None and isinstance(source, (str, Path)):
        filename = Path(source).name
    kind = file_kind(filename or "")
    data = _as_bytes(source)
    if kind == "xlsx":
        return read_xlsx_rows(data)
    return read_csv_rows(data)


def write_sheet(title: str, columns: list[str],
                rows: Iterable[dict[str, Any]]) -> bytes:
    """Write one worksheet with a header row and return the xlsx bytes."""
    wb = openpyxl.Workbook(write_only=True)
    ws = wb.create_sheet(title)
    ws.append(columns)
    for row in rows:
        ws.append([row.get(col) for col in columns])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def template_workbook() -> bytes:
    """One-row sample workbook showing the import column layout."""
    return write_sheet(TEMPLATE_SHEET, IMPORT_COLUMNS, [TEMPLATE_ROW])
