"""
Spreadsheet import endpoints.

POST /api/v1/importar            → import an .xlsx / .csv upload
POST /api/v1/importar/preview    → first rows of an upload with their validation
GET  /api/v1/importar/plantilla  → one-row sample workbook
GET  /api/v1/importar/jobs       → recent import jobs
"""

import logging
import time

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from api.database import get_config, get_request_repository, get_session
from api.models import ErrorResponse, ImportJobOut, ImportResultOut, PreviewOut
from inventario.session import UserSession
from pipeline.importer import ViviendaImporter, preview_rows
from pipeline.logging import ImportReport
from pipeline.run_ledger import append_to_ledger
from store.base import Repository
from utils.spreadsheet import (
    TEMPLATE_FILENAME,
    UNREADABLE_FILE_ERRORS,
    XLSX_MEDIA_TYPE,
    UnsupportedFileType,
    read_rows,
    template_workbook,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/importar", tags=["importar"])


def _parse_upload(upload: UploadFile) -> list[dict]:
    try:
        return read_rows(upload.file.read(), upload.filename or "")
    except UnsupportedFileType as e:
        raise HTTPException(status_code=415, detail=str(e)) from e
    except UNREADABLE_FILE_ERRORS as e:
        raise HTTPException(status_code=400,
                            detail=f"No se pudo leer el archivo: {e}") from e


@router.post(
    "",
    response_model=ImportResultOut,
    responses={403: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Import units from a spreadsheet",
)
def import_viviendas(
    file: UploadFile = File(..., description=".xlsx or .csv with the template columns"),
    session: UserSession = Depends(get_session),
    repo: Repository = Depends(get_request_repository),
) -> ImportResultOut:
    """Validate and upsert every row; rows with errors are reported, not fatal."""
    session.require_import()
    filename = file.filename or ""
    rows = _parse_upload(file)

    started = time.monotonic()
    report = ImportReport(filename=filename, status="started")
    result = ViviendaImporter(repo, report=report).run(rows, filename, session)
    report.elapsed_seconds = time.monotonic() - started
    report.status = "completed"
    logger.info("API import of %s by %s: %d ok, %d errors",
                filename, session.user_id, result.success, result.errors)

    ledger_path = get_config().ledger_path
    if ledger_path is not None:
        append_to_ledger(
            report,
            exit_code=2 if result.errors else 0,
            ledger_path=ledger_path,
            extra={"source": "api", "actor": session.user_id},
        )
    return ImportResultOut(**result.to_dict())


@router.post(
    "/preview",
    response_model=PreviewOut,
    responses={415: {"model": ErrorResponse}},
    summary="Preview a spreadsheet without importing",
)
def preview_import(
    file: UploadFile = File(...),
    limit: int = Query(5, ge=1, le=50),
) -> PreviewOut:
    preview = preview_rows(_parse_upload(file), limit=limit)
    return PreviewOut(filename=file.filename or "", **preview)


@router.get("/plantilla", summary="Download the import template")
def download_template() -> Response:
    return Response(
        content=template_workbook(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={TEMPLATE_FILENAME}"},
    )


@router.get("/jobs", response_model=list[ImportJobOut], summary="Recent import jobs")
def list_jobs(
    limit: int = Query(20, ge=1, le=200),
    repo: Repository = Depends(get_request_repository),
) -> list[ImportJobOut]:
    return [ImportJobOut.model_validate(j) for j in repo.get_import_jobs(limit)]
