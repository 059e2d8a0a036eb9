"""
Spreadsheet export endpoints.

GET /api/v1/download/viviendas   → filtered units as viviendas_<date>.xlsx
GET /api/v1/download/historial   → filtered history as historial_cambios_<date>.xlsx

Both accept the same filter parameters as their list endpoints and set
X-Total-Count to the number of exported rows.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from api.database import get_request_repository
from api.routes.historial import historial_filters
from api.routes.viviendas import vivienda_filters
from inventario.export import export_historial, export_viviendas
from inventario.filters import HistorialFilters, ViviendaFilters, filter_cambios
from store.base import Repository
from utils.spreadsheet import XLSX_MEDIA_TYPE

router = APIRouter(prefix="/download", tags=["download"])


def _xlsx_response(filename: str, content: bytes, count: int) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "X-Total-Count": str(count),
        },
    )


@router.get("/viviendas", summary="Export units to Excel")
def download_viviendas(
    filters: ViviendaFilters = Depends(vivienda_filters),
    repo: Repository = Depends(get_request_repository),
) -> Response:
    units = repo.get_units(filters)
    filename, content = export_viviendas(units)
    return _xlsx_response(filename, content, len(units))


@router.get("/historial", summary="Export state history to Excel")
def download_historial(
    filters: HistorialFilters = Depends(historial_filters),
    repo: Repository = Depends(get_request_repository),
) -> Response:
    cambios = filter_cambios(repo.get_cambios(), filters)
    filename, content = export_historial(cambios)
    return _xlsx_response(filename, content, len(cambios))
