"""
State history endpoints.

GET /api/v1/historial                   → filtered audit history, newest first
GET /api/v1/historial/notificaciones    → recent failed notifications
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from api.database import get_dispatcher, get_request_repository
from api.models import CambioEstadoOut, HistorialResponse, NotificationFailureOut
from inventario.filters import HistorialFilters, filter_cambios
from store.base import Repository

router = APIRouter(prefix="/historial", tags=["historial"])


def historial_filters(
    search: str = Query("", description="Substring of unit codigo or motivo"),
    de_estado: str = Query("", description="Exact previous estado"),
    a_estado: str = Query("", description="Exact new estado"),
    gestor: str = Query("", description="Gestor persona id"),
    responsable: str = Query("", description="Responsable persona id"),
    actor: str = Query("", description="Actor profile id"),
    fecha_desde: date | None = Query(None, description="Inclusive start day (YYYY-MM-DD)"),
    fecha_hasta: date | None = Query(None, description="Inclusive end day (YYYY-MM-DD)"),
) -> HistorialFilters:
    """FastAPI dependency: history filters from query parameters."""
    return HistorialFilters(
        search=search.strip(),
        de_estado=de_estado.strip().upper(),
        a_estado=a_estado.strip().upper(),
        gestor=gestor,
        responsable=responsable,
        actor=actor,
        fecha_desde=fecha_desde,
        fecha_hasta=fecha_hasta,
    )


@router.get(
    "",
    response_model=HistorialResponse,
    summary="List state changes",
)
def list_historial(
    filters: HistorialFilters = Depends(historial_filters),
    limit: int | None = Query(None, ge=1, le=10000, description="Cap on records returned"),
    repo: Repository = Depends(get_request_repository),
) -> HistorialResponse:
    cambios = repo.get_cambios()
    matched = filter_cambios(cambios, filters)
    page = matched[:limit] if limit else matched
    return HistorialResponse(
        total=len(cambios),
        filtered=len(matched),
        items=[CambioEstadoOut.model_validate(c) for c in page],
    )


@router.get(
    "/notificaciones",
    response_model=list[NotificationFailureOut],
    summary="Failed status notifications",
)
def list_notification_failures() -> list[NotificationFailureOut]:
    """Most recent notification deliveries that failed, newest first."""
    failures = list(get_dispatcher().failures)
    failures.reverse()
    return [NotificationFailureOut(**f.to_dict()) for f in failures]
