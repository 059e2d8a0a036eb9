"""
Reference data endpoints.

GET /api/v1/reference/estados        → estado codes with display colour and icon
GET /api/v1/reference/transiciones   → the full transition table
GET /api/v1/reference/personas       → active personas (all with activos=false)
GET /api/v1/reference/profiles       → application users
GET /api/v1/reference/opciones       → distinct portales and tipologias
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.database import get_request_repository
from api.models import FilterOptionsOut, PersonaOut, ProfileOut
from inventario.filters import filter_options
from inventario.models import Estado
from inventario.transitions import transition_table
from store.base import Repository
from utils.formatting import get_estado_color, get_estado_icon

router = APIRouter(prefix="/reference", tags=["reference"])

_CACHE_HEADER = {"Cache-Control": "max-age=3600"}


@router.get("/estados", summary="List estados")
def list_estados() -> JSONResponse:
    data = [
        {"code": e.value, "color": get_estado_color(e), "icon": get_estado_icon(e)}
        for e in Estado
    ]
    return JSONResponse(content=data, headers=_CACHE_HEADER)


@router.get("/transiciones", summary="Transition table")
def list_transiciones() -> JSONResponse:
    """Estados offered as next step, keyed by current estado."""
    return JSONResponse(content=transition_table(), headers=_CACHE_HEADER)


@router.get("/personas", response_model=list[PersonaOut], summary="List personas")
def list_personas(
    activos: bool = Query(True, description="Only active personas"),
    repo: Repository = Depends(get_request_repository),
) -> list[PersonaOut]:
    return [PersonaOut.model_validate(p) for p in repo.get_personas(active_only=activos)]


@router.get("/profiles", response_model=list[ProfileOut], summary="List users")
def list_profiles(repo: Repository = Depends(get_request_repository)) -> list[ProfileOut]:
    return [ProfileOut.model_validate(p) for p in repo.get_profiles()]


@router.get("/opciones", response_model=FilterOptionsOut, summary="Filter options")
def list_opciones(repo: Repository = Depends(get_request_repository)) -> FilterOptionsOut:
    return FilterOptionsOut(**filter_options(repo.get_units()))
