"""Dashboard aggregates: KPI counts, the per-estado chart series and the
most recent state changes."""

from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from inventario.models import CambioEstado, Estado, Vivienda
from utils.common import parse_timestamp

RECENT_CHANGES_LIMIT = 10

CHART_SERIES = (
    (Estado.LIBRE, "Libres", "#10b981"),
    (Estado.BLOQUEADA, "Bloqueadas", "#f59e0b"),
    (Estado.RESERVADA, "Reservadas", "#ef4444"),
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def compute_kpis(viviendas: Iterable[Vivienda]) -> dict[str, int]:
    counts = Counter(v.estado for v in viviendas)
    return {
        "total": sum(counts.values()),
        "libres": counts[Estado.LIBRE],
        "bloqueadas": counts[Estado.BLOQUEADA],
        "reservadas": counts[Estado.RESERVADA],
    }


def estado_chart(kpis: dict[str, int]) -> list[dict]:
    """Chart series in fixed LIBRE, BLOQUEADA, RESERVADA order."""
    keys = {Estado.LIBRE: "libres", Estado.BLOQUEADA: "bloqueadas",
            Estado.RESERVADA: "reservadas"}
    return [
        {"name": name, "value": kpis[keys[estado]], "color": color}
        for estado, name, color in CHART_SERIES
    ]


def recent_changes(cambios: Iterable[CambioEstado],
                   limit: int = RECENT_CHANGES_LIMIT) -> list[CambioEstado]:
    """Newest ``limit`` changes, ordered by ``created_at`` descending."""
    ordered = sorted(
        cambios,
        key=lambda c: parse_timestamp(c.created_at) or _EPOCH,
        reverse=True,
    )
    return ordered[:limit]


def dashboard_summary(viviendas: Iterable[Vivienda],
                      cambios: Iterable[CambioEstado],
                      limit: int = RECENT_CHANGES_LIMIT) -> dict:
    kpis = compute_kpis(viviendas)
    return {
        "kpis": kpis,
        "chart": estado_chart(kpis),
        "recent_changes": recent_changes(cambios, limit),
    }
