"""
Spreadsheet import of viviendas.

Rows are processed strictly in sheet order.  Each row is validated, its
Gestor / Último Responsable names resolved against the active personas,
mapped to a ``Vivienda`` and upserted by ``codigo_unique``.  A row that
fails validation or whose upsert the backend rejects is recorded with its
1-based sheet row number and the import carries on.  When every row has
been attempted one ``ImportJob`` summarising the run is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from inventario.exceptions import InventarioError, PartialImportFailure
from inventario.models import Estado, ImportJob, ImportStatus, Persona, Vivienda
from inventario.session import UserSession
from pipeline.logging import ImportReport
from store.base import Repository
from utils.spreadsheet import (
    COL_DORMITORIOS,
    COL_ESTADO,
    COL_GESTOR,
    COL_LETRA,
    COL_OBSERVACIONES,
    COL_ORIENTACION,
    COL_PLANTA,
    COL_PORTAL,
    COL_PVP,
    COL_RESPONSABLE,
    COL_SUP_TERRAZA,
    COL_SUP_TERRAZAS,
    COL_SUP_VIVIENDA,
    COL_TIPOLOGIA,
    read_rows,
)
from utils.strings import cell_text, normalize_whitespace, to_number
from utils.validation import validate_row

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 5

# Sheet row of the first data row: header is row 1.
FIRST_DATA_ROW = 2

ProgressCallback = Callable[[int, int], None]


@dataclass
class RowError:
    row: int
    error: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "error": self.error, "data": self.data}


@dataclass
class ImportResult:
    filename: str
    total_rows: int = 0
    success: int = 0
    details: list[RowError] = field(default_factory=list)
    job: ImportJob | None = None

    @property
    def errors(self) -> int:
        return len(self.details)

    @property
    def status(self) -> ImportStatus:
        return ImportStatus.ERROR if self.details else ImportStatus.OK

    @property
    def partial_failure(self) -> PartialImportFailure | None:
        """Summary flag when some rows were imported and some were not."""
        if self.success and self.details:
            return PartialImportFailure(self.success, self.errors)
        return None

    def to_dict(self) -> dict[str, Any]:
        partial = self.partial_failure
        return {
            "filename": self.filename,
            "status": self.status.value,
            "total_rows": self.total_rows,
            "success": self.success,
            "errors": self.errors,
            "partial_failure": partial.message if partial else None,
            "details": [d.to_dict() for d in self.details],
            "job_id": self.job.id if self.job else None,
        }


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in row.items():
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif value is not None and not isinstance(value, (str, int, float, bool)):
            value = str(value)
        out[key] = value
    return out


def build_persona_map(personas: Iterable[Persona]) -> dict[str, str]:
    """Lookup of persona display name to id (whitespace-normalised)."""
    return {normalize_whitespace(p.nombre): p.id for p in personas if p.nombre}


def resolve_persona(value: Any, persona_map: dict[str, str]) -> str | None:
    name = cell_text(value)
    if name is None:
        return None
    return persona_map.get(normalize_whitespace(name))


def row_to_vivienda(row: dict[str, Any], persona_map: dict[str, str]) -> Vivienda:
    """Map a validated row to a ``Vivienda``; blanks become ``None``."""
    dormitorios = to_number(row.get(COL_DORMITORIOS))
    estado = cell_text(row.get(COL_ESTADO))
    return Vivienda(
        portal=cell_text(row.get(COL_PORTAL)),
        planta=cell_text(row.get(COL_PLANTA)),
        letra=cell_text(row.get(COL_LETRA)),
        tipologia=cell_text(row.get(COL_TIPOLOGIA)),
        orientacion=cell_text(row.get(COL_ORIENTACION)),
        dormitorios=int(round(dormitorios)) if dormitorios is not None else None,
        sup_util_terraza=to_number(row.get(COL_SUP_TERRAZA)),
        sup_util_vivienda=to_number(row.get(COL_SUP_VIVIENDA)),
        sup_util_terrazas=to_number(row.get(COL_SUP_TERRAZAS)),
        pvp_final=to_number(row.get(COL_PVP)),
        observaciones=cell_text(row.get(COL_OBSERVACIONES)),
        estado=Estado(estado.upper()) if estado else Estado.LIBRE,
        gestor_id=resolve_persona(row.get(COL_GESTOR), persona_map),
        responsable_id=resolve_persona(row.get(COL_RESPONSABLE), persona_map),
    )


def preview_rows(rows: list[dict[str, Any]], limit: int = PREVIEW_ROWS) -> dict[str, Any]:
    """First ``limit`` rows plus per-row validation, without importing."""
    return {
        "total_rows": len(rows),
        "rows": [
            {
                "row": i + FIRST_DATA_ROW,
                "data": _jsonable(row),
                "errors": validate_row(row),
            }
            for i, row in enumerate(rows[:limit])
        ],
    }


class ViviendaImporter:
    """Runs one import against a repository on behalf of a session."""

    def __init__(self, repository: Repository,
                 report: ImportReport | None = None,
                 progress: ProgressCallback | None = None) -> None:
        self.repository = repository
        self.report = report
        self.progress = progress

    def run(self, rows: list[dict[str, Any]], filename: str,
            session: UserSession) -> ImportResult:
        """Import ``rows`` and persist the ImportJob.

        Raises:
            PermissionDenied: the session may not import.
            RemoteOperationError: personas could not be loaded or the
                ImportJob could not be written.
        """
        session.require_import()
        report = self.report or ImportReport(filename=filename, status="started")
        result = ImportResult(filename=filename, total_rows=len(rows))
        report.rows_total = len(rows)
        persona_map = build_persona_map(self.repository.get_personas(active_only=True))
        logger.info("Importing %d rows from %s (%d personas known)",
                    len(rows), filename, len(persona_map))

        for i, row in enumerate(rows):
            row_number = i + FIRST_DATA_ROW
            errors = validate_row(row)
            if errors:
                message = ", ".join(errors)
                result.details.append(RowError(row_number, message, _jsonable(row)))
                report.add_skip("validation", message, row_number)
                logger.debug("Row %d invalid: %s", row_number, message)
            else:
                try:
                    vivienda = row_to_vivienda(row, persona_map)
                    self.repository.upsert_unit(vivienda, actor_user_id=session.user_id)
                except InventarioError as e:
                    result.details.append(RowError(row_number, e.message or str(e),
                                                   _jsonable(row)))
                    report.add_skip("upsert_error", e.message or str(e), row_number)
                    logger.warning("Row %d upsert failed: %s", row_number, e)
                else:
                    result.success += 1
            if self.progress is not None:
                self.progress(i + 1, len(rows))

        job = ImportJob(
            filename=filename,
            status=result.status,
            total_rows=result.total_rows,
            ok_rows=result.success,
            error_rows=result.errors,
            log={"errors": [d.to_dict() for d in result.details]},
        )
        result.job = self.repository.append_import_job(job)

        report.rows_imported = result.success
        report.metrics["job_status"] = result.status.value
        if result.partial_failure is not None:
            report.detail = result.partial_failure.message
        logger.info("Import of %s finished: %d ok, %d errors",
                    filename, result.success, result.errors)
        return result


def import_file(repository: Repository, source, session: UserSession,
                filename: str | None = None,
                report: ImportReport | None = None,
                progress: ProgressCallback | None = None) -> ImportResult:
    """Read an .xlsx / .csv upload and import it.

    Args:
        repository: Target store.
        source: Path, raw bytes or binary file object.
        session: Acting user; must be admin or gestor.
        filename: Upload name (picks the reader and is stored on the job).
    """
    session.require_import()
    if filename is None and isinstance(source, (str, Path)):
        filename = Path(source).name
    rows = read_rows(source, filename)
    importer = ViviendaImporter(repository, report=report, progress=progress)
    return importer.run(rows, filename or "", session)
