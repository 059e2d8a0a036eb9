"""Dashboard endpoints for the overview page."""

from fastapi import APIRouter, Depends, Query

from api.database import get_request_repository
from api.models import CambioEstadoOut, DashboardSummaryOut, KpisOut
from inventario.stats import RECENT_CHANGES_LIMIT, compute_kpis, dashboard_summary
from store.base import Repository

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummaryOut,
            summary="Dashboard summary statistics")
def get_summary(
    limit: int = Query(RECENT_CHANGES_LIMIT, ge=1, le=100,
                       description="Number of recent changes to include"),
    repo: Repository = Depends(get_request_repository),
) -> DashboardSummaryOut:
    """Return the data behind the overview page.

    Includes:
    - KPI counts (total, libres, bloqueadas, reservadas)
    - Chart series with one coloured point per estado
    - The most recent state changes, newest first
    """
    summary = dashboard_summary(repo.get_units(), repo.get_cambios(limit=limit), limit)
    return DashboardSummaryOut(
        kpis=KpisOut(**summary["kpis"]),
        chart=summary["chart"],
        recent_changes=[CambioEstadoOut.model_validate(c)
                        for c in summary["recent_changes"]],
    )


@router.get("/kpis", response_model=KpisOut, summary="Unit counts per estado")
def get_kpis(repo: Repository = Depends(get_request_repository)) -> KpisOut:
    return KpisOut(**compute_kpis(repo.get_units()))


@router.get("/recent", response_model=list[CambioEstadoOut],
            summary="Most recent state changes")
def get_recent(
    limit: int = Query(RECENT_CHANGES_LIMIT, ge=1, le=100),
    repo: Repository = Depends(get_request_repository),
) -> list[CambioEstadoOut]:
    return [CambioEstadoOut.model_validate(c) for c in repo.get_cambios(limit=limit)]
