"""Output formatting utilities for the viviendas inventory.

Provides reusable functions for:
- Formatting euro amounts and timestamps the way es-ES users read them
- Mapping estados and roles to their display colours and icons
"""

from datetime import datetime
from typing import Optional

from utils.common import parse_timestamp

# Abbreviated month names as rendered by the es-ES locale.
_MONTHS_ES = (
    "ene", "feb", "mar", "abr", "may", "jun",
    "jul", "ago", "sept", "oct", "nov", "dic",
)

# es-ES separates the amount from the currency sign with a no-break space.
_NBSP = "\u00a0"

ESTADO_COLORS = {
    "LIBRE": "bg-green-100 text-green-800 border-green-200",
    "BLOQUEADA": "bg-yellow-100 text-yellow-800 border-yellow-200",
    "RESERVADA": "bg-red-100 text-red-800 border-red-200",
}
DEFAULT_ESTADO_COLOR = "bg-gray-100 text-gray-800 border-gray-200"

ESTADO_ICONS = {
    "LIBRE": "check-circle",
    "BLOQUEADA": "lock",
    "RESERVADA": "user-check",
}
DEFAULT_ESTADO_ICON = "help-circle"

ROLE_COLORS = {
    "admin": "bg-purple-100 text-purple-800",
    "gestor": "bg-blue-100 text-blue-800",
    "promotor": "bg-green-100 text-green-800",
}
DEFAULT_ROLE_COLOR = "bg-gray-100 text-gray-800"


def _group_thousands(digits: str) -> str:
    # es-ES only groups numbers of five or more digits: 1500 but 15.000
    if len(digits) < 5:
        return digits
    groups = []
    while digits:
        groups.append(digits[-3:])
        digits = digits[:-3]
    return ".".join(reversed(groups))


def format_currency(amount: Optional[float]) -> str:
    """Format a euro amount with no decimals.

    Args:
        amount: Amount in euros (``None`` renders as "-")

    Returns:
        Formatted string like "225.000 €" (no-break space before the sign)

    Examples:
        format_currency(225000) -> "225.000 €"
        format_currency(1500)   -> "1500 €"
        format_currency(None)   -> "-"
    """
    if amount is None:
        return "-"
    rounded = int(round(float(amount)))
    sign = "-" if rounded < 0 else ""
    return f"{sign}{_group_thousands(str(abs(rounded)))}{_NBSP}€"


def format_date(value) -> str:
    """Format a timestamp as es-ES day, short month, year and time (UTC).

    Examples:
        format_date("2024-01-15T10:30:00Z") -> "15 ene 2024, 10:30"
        format_date(None) -> "-"
    """
    dt: Optional[datetime] = parse_timestamp(value)
    if dt is None:
        return "-"
    month = _MONTHS_ES[dt.month - 1]
    return f"{dt.day} {month} {dt.year}, {dt.hour:02d}:{dt.minute:02d}"


def _key(value) -> str:
    return getattr(value, "value", value) or ""


def get_estado_color(estado) -> str:
    return ESTADO_COLORS.get(_key(estado), DEFAULT_ESTADO_COLOR)


def get_estado_icon(estado) -> str:
    return ESTADO_ICONS.get(_key(estado), DEFAULT_ESTADO_ICON)


def get_role_color(role) -> str:
    return ROLE_COLORS.get(_key(role), DEFAULT_ROLE_COLOR)
