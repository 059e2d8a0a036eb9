"""In-memory filtering of units and state-change history.

Both filters are plain dataclasses whose empty fields impose no
restriction; all set fields are AND-combined.  The predicates are pure so
the API, the export scripts and the tests share exactly one definition.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from inventario.models import CambioEstado, Vivienda
from utils.common import parse_timestamp


@dataclass
class ViviendaFilters:
    search: str = ""
    portal: str = ""
    estados: list[str] = field(default_factory=list)
    tipologia: str = ""
    gestor: str = ""
    responsable: str = ""

    def is_active(self) -> bool:
        return has_active_filters(self)


@dataclass
class HistorialFilters:
    search: str = ""
    de_estado: str = ""
    a_estado: str = ""
    gestor: str = ""
    responsable: str = ""
    actor: str = ""
    fecha_desde: str | date | None = None
    fecha_hasta: str | date | None = None

    def is_active(self) -> bool:
        return has_active_filters(self)


def has_active_filters(filters) -> bool:
    """True when any field of a filter dataclass is set."""
    return any(getattr(filters, f.name) for f in fields(filters))


def _estado_code(value) -> str:
    return getattr(value, "value", value) or ""


# ── Units ─────────────────────────────────────────────────────────────────────


def matches_vivienda(v: Vivienda, filters: ViviendaFilters) -> bool:
    if filters.search:
        haystack = " ".join(
            str(part) for part in
            (v.codigo_unique, v.portal, v.planta, v.letra, v.tipologia)
            if part
        ).lower()
        if filters.search.lower() not in haystack:
            return False
    if filters.portal and v.portal != filters.portal:
        return False
    if filters.estados and _estado_code(v.estado) not in {
        _estado_code(e) for e in filters.estados
    }:
        return False
    if filters.tipologia and v.tipologia != filters.tipologia:
        return False
    if filters.gestor and v.gestor_id != filters.gestor:
        return False
    if filters.responsable and v.responsable_id != filters.responsable:
        return False
    return True


def filter_viviendas(viviendas: Iterable[Vivienda],
                     filters: ViviendaFilters | None) -> list[Vivienda]:
    """Subset of ``viviendas`` matching ``filters``, order preserved."""
    if filters is None:
        return list(viviendas)
    return [v for v in viviendas if matches_vivienda(v, filters)]


def filter_options(viviendas: Iterable[Vivienda]) -> dict[str, list[str]]:
    """Distinct, sorted portal and tipologia values for filter dropdowns."""
    viviendas = list(viviendas)
    return {
        "portales": sorted({v.portal for v in viviendas if v.portal}),
        "tipologias": sorted({v.tipologia for v in viviendas if v.tipologia}),
    }


# ── History ───────────────────────────────────────────────────────────────────


def _day(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def date_bounds(filters: HistorialFilters) -> tuple[datetime | None, datetime | None]:
    """Inclusive UTC bounds of the history date range.

    The upper bound is the last millisecond of ``fecha_hasta``.
    """
    lower = upper = None
    desde = _day(filters.fecha_desde)
    hasta = _day(filters.fecha_hasta)
    if desde is not None:
        lower = datetime.combine(desde, time.min, tzinfo=timezone.utc)
    if hasta is not None:
        upper = (datetime.combine(hasta, time.min, tzinfo=timezone.utc)
                 + timedelta(days=1) - timedelta(milliseconds=1))
    return lower, upper


def matches_cambio(c: CambioEstado, filters: HistorialFilters,
                   lower: datetime | None = None,
                   upper: datetime | None = None) -> bool:
    if filters.search:
        haystack = f"{c.codigo_unique or ''} {c.motivo or ''}".lower()
        if filters.search.lower() not in haystack:
            return False
    if filters.de_estado and _estado_code(c.de_estado) != _estado_code(filters.de_estado):
        return False
    if filters.a_estado and _estado_code(c.a_estado) != _estado_code(filters.a_estado):
        return False
    if filters.gestor and c.gestor_id != filters.gestor:
        return False
    if filters.responsable and c.responsable_id != filters.responsable:
        return False
    if filters.actor and c.actor_user_id != filters.actor:
        return False
    if lower is not None or upper is not None:
        created = parse_timestamp(c.created_at)
        if created is None:
            return False
        if lower is not None and created < lower:
            return False
        if upper is not None and created > upper:
            return False
    return True


def filter_cambios(cambios: Iterable[CambioEstado],
                   filters: HistorialFilters | None) -> list[CambioEstado]:
    """Subset of ``cambios`` matching ``filters``, order preserved."""
    if filters is None:
        return list(cambios)
    lower, upper = date_bounds(filters)
    return [c for c in cambios if matches_cambio(c, filters, lower, upper)]
