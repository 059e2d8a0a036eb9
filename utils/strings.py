"""String and cell-value helpers for spreadsheet ingestion.

Spreadsheet cells arrive as whatever openpyxl or the csv module hands back:
``None``, ``str``, ``int``, ``float`` and occasionally ``bool`` or
``datetime``.  These helpers normalise them before validation and mapping.
"""

import math
import re

WHITESPACE = re.compile(r"\s+")


def is_blank(val) -> bool:
    """True for ``None`` and strings that are empty after stripping.

    Numeric zero is *not* blank: a Planta cell holding 0 is a ground floor.
    """
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip() == ""
    return False


def to_number(val) -> float | None:
    """Convert a cell to float, ``None`` for blanks.

    Raises:
        ValueError: for text that is not a finite number (``"12,5"``,
            ``"abc"``, ``"NaN"``).
    """
    if is_blank(val):
        return None
    if isinstance(val, bool):
        raise ValueError(f"not a number: {val!r}")
    if isinstance(val, (int, float)):
        result = float(val)
    else:
        result = float(str(val).strip())
    if not math.isfinite(result):
        raise ValueError(f"not a number: {val!r}")
    return result


def is_numeric(val) -> bool:
    """True when ``to_number`` would accept the value (blanks included)."""
    try:
        to_number(val)
    except (TypeError, ValueError):
        return False
    return True


def cell_text(val) -> str | None:
    """Render a cell as trimmed text, ``None`` for blanks.

    Integral floats lose their ``.0`` so a Portal typed as 1 in Excel
    reads back as ``"1"`` rather than ``"1.0"``.

    Example:
        cell_text(3.0) -> "3"
        cell_text("  Piso ") -> "Piso"
    """
    if is_blank(val):
        return None
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Example:
        "Juan  L.\\n Herrero" -> "Juan L. Herrero"
    """
    return WHITESPACE.sub(" ", s).strip()
