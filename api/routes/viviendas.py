"""
Unit endpoints.

GET  /api/v1/viviendas                      → filtered unit list
GET  /api/v1/viviendas/{id}                 → one unit
GET  /api/v1/viviendas/{id}/transiciones    → estados offered as next step
POST /api/v1/viviendas/{id}/estado          → guarded state change
"""

from fastapi import APIRouter, Depends, Query

from api.database import get_estado_service, get_request_repository, get_session
from api.models import (
    CambioEstadoIn,
    CambioEstadoOut,
    ErrorResponse,
    TransicionesOut,
    ViviendaListResponse,
    ViviendaOut,
)
from inventario.exceptions import NotFoundError
from inventario.filters import ViviendaFilters, filter_viviendas
from inventario.service import EstadoService
from inventario.session import UserSession
from inventario.transitions import allowed_transitions
from store.base import Repository

router = APIRouter(prefix="/viviendas", tags=["viviendas"])


def vivienda_filters(
    search: str = Query("", description="Substring of codigo, portal, planta, letra or tipologia"),
    portal: str = Query("", description="Exact portal"),
    estados: list[str] = Query([], description="Repeatable; empty means any estado"),
    tipologia: str = Query("", description="Exact tipologia"),
    gestor: str = Query("", description="Gestor persona id"),
    responsable: str = Query("", description="Responsable persona id"),
) -> ViviendaFilters:
    """FastAPI dependency: unit filters from query parameters."""
    return ViviendaFilters(
        search=search.strip(),
        portal=portal,
        estados=[e.strip().upper() for e in estados if e.strip()],
        tipologia=tipologia,
        gestor=gestor,
        responsable=responsable,
    )


@router.get(
    "",
    response_model=ViviendaListResponse,
    summary="List units",
)
def list_viviendas(
    filters: ViviendaFilters = Depends(vivienda_filters),
    repo: Repository = Depends(get_request_repository),
) -> ViviendaListResponse:
    """Return every unit matching the filters, ordered by codigo."""
    units = repo.get_units()
    matched = filter_viviendas(units, filters)
    return ViviendaListResponse(
        total=len(units),
        filtered=len(matched),
        items=[ViviendaOut.model_validate(v) for v in matched],
    )


def _get_or_404(repo: Repository, vivienda_id: str):
    unit = repo.get_unit(vivienda_id)
    if unit is None:
        raise NotFoundError(f"Vivienda {vivienda_id} no encontrada")
    return unit


@router.get(
    "/{vivienda_id}",
    response_model=ViviendaOut,
    responses={404: {"model": ErrorResponse}},
    summary="Get one unit",
)
def get_vivienda(
    vivienda_id: str,
    repo: Repository = Depends(get_request_repository),
) -> ViviendaOut:
    return ViviendaOut.model_validate(_get_or_404(repo, vivienda_id))


@router.get(
    "/{vivienda_id}/transiciones",
    response_model=TransicionesOut,
    responses={404: {"model": ErrorResponse}},
    summary="Estados offered for a unit",
)
def get_transiciones(
    vivienda_id: str,
    repo: Repository = Depends(get_request_repository),
) -> TransicionesOut:
    unit = _get_or_404(repo, vivienda_id)
    return TransicionesOut(
        estado=unit.estado,
        transiciones=list(allowed_transitions(unit.estado)),
    )


@router.post(
    "/{vivienda_id}/estado",
    response_model=CambioEstadoOut,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Change the estado of a unit",
)
def change_estado(
    vivienda_id: str,
    body: CambioEstadoIn,
    session: UserSession = Depends(get_session),
    service: EstadoService = Depends(get_estado_service),
) -> CambioEstadoOut:
    """Move the unit to ``a_estado`` and record the change.

    ``motivo`` is mandatory for BLOQUEADA and RESERVADA.  The email
    notification is sent in the background; its outcome does not affect
    this response.
    """
    unit = service.load_unit(vivienda_id)
    cambio = service.change_estado(
        unit, body.a_estado, session,
        gestor_id=body.gestor_id,
        responsable_id=body.responsable_id,
        motivo=body.motivo,
    )
    return CambioEstadoOut.model_validate(cambio)
