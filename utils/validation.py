"""Row validation for viviendas spreadsheet imports.

``validate_row`` inspects one parsed row and returns every problem it
finds as a Spanish, user-facing message.  It never raises and never looks
at the backend; an empty list means the row may be mapped and upserted.
"""

from typing import Any, Dict, List

from inventario.models import ESTADOS_VALIDOS
from utils.spreadsheet import (
    COL_DORMITORIOS,
    COL_ESTADO,
    COL_LETRA,
    COL_PLANTA,
    COL_PORTAL,
    DECIMAL_COLUMNS,
)
from utils.strings import is_blank, is_numeric

_REQUIRED = (
    (COL_PORTAL, "Portal es obligatorio"),
    (COL_PLANTA, "Planta es obligatoria"),
    (COL_LETRA, "Letra es obligatoria"),
)


def is_valid_estado(value: Any) -> bool:
    return str(value).strip() in ESTADOS_VALIDOS


def validate_row(row: Dict[str, Any]) -> List[str]:
    """Validate one import row.

    Args:
        row: Mapping of column header to cell value.

    Returns:
        All error messages for the row, in column order; empty when valid.

    Examples:
        validate_row({"Portal": "1", "Planta": 0, "Letra": "A"}) -> []
        validate_row({"Estado": "VENDIDA", ...})
            -> ["Estado debe ser uno de: LIBRE, BLOQUEADA, RESERVADA"]
    """
    errors: List[str] = []

    for column, message in _REQUIRED:
        if is_blank(row.get(column)):
            errors.append(message)

    estado = row.get(COL_ESTADO)
    if not is_blank(estado) and not is_valid_estado(estado):
        errors.append(f"Estado debe ser uno de: {', '.join(ESTADOS_VALIDOS)}")

    dormitorios = row.get(COL_DORMITORIOS)
    if not is_blank(dormitorios) and not is_numeric(dormitorios):
        errors.append("Dormitorios debe ser un número")

    for column in DECIMAL_COLUMNS:
        value = row.get(column)
        if not is_blank(value) and not is_numeric(value):
            errors.append(f"{column} debe ser un número")

    return errors
