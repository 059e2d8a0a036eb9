"""Common utility functions used across the viviendas inventory tools."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime.

    Accepts ``datetime`` objects (naive values are taken as UTC), ISO-8601
    strings including the ``Z`` suffix PostgREST emits, or ``None``.

    Examples:
        parse_timestamp("2024-01-15T10:30:00Z")
        parse_timestamp("2024-01-15 10:30:00+00:00")
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Serialise a datetime as ISO-8601 (UTC), passing ``None`` through."""
    if value is None:
        return None
    return parse_timestamp(value).isoformat()


def sanitize_filename(name: str) -> str:
    """Remove invalid filesystem characters and URL query parameters from filename."""
    if "?" in name:
        name = name.split("?")[0]
    for ch in '<>:"/\\|?*':
        name = name.replace(ch, "_")
    return name


def dated_filename(prefix: str, extension: str = "xlsx",
                   today: date | None = None) -> str:
    """Build a download filename stamped with the current date.

    Examples:
        dated_filename("viviendas") -> "viviendas_2024-01-15.xlsx"
    """
    day = today or utc_now().date()
    return sanitize_filename(f"{prefix}_{day.isoformat()}.{extension}")
