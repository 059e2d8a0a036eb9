"""
Pydantic request/response models for the API.

Response models read straight from the domain dataclasses
(``from_attributes=True``).  Optional fields default to None so records
with empty columns still validate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from inventario.models import Estado, ImportStatus, PersonaTipo, Role


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── People ────────────────────────────────────────────────────────────────────

class PersonaOut(_FromDomain):
    """A gestor or promotor."""
    id: str = Field(..., description="Persona id")
    nombre: str = Field(..., description="Display name", examples=["Juan L. Herrero"])
    email: str | None = Field(None, description="Contact email")
    tipo: PersonaTipo = Field(PersonaTipo.GESTOR, description="GESTOR | PROMOTOR")
    activo: bool = Field(True, description="Inactive personas are hidden from pickers")


class PersonaRef(_FromDomain):
    id: str
    nombre: str


class ProfileOut(_FromDomain):
    """An application user."""
    id: str
    email: str
    full_name: str | None = None
    role: Role = Field(Role.VIEWER, description="admin | gestor | promotor | viewer")


# ── Units ─────────────────────────────────────────────────────────────────────

class ViviendaOut(_FromDomain):
    """One housing unit with its assigned personas embedded."""
    id: str = Field(..., description="Unit id")
    codigo_unique: str = Field(..., description="Unique code portal-planta-letra", examples=["1-0-A"])
    portal: str | None = Field(None, examples=["1"])
    planta: str | None = Field(None, examples=["0"])
    letra: str | None = Field(None, examples=["A"])
    tipologia: str | None = Field(None, examples=["Piso"])
    orientacion: str | None = Field(None, examples=["S"])
    dormitorios: int | None = Field(None, examples=[2])
    sup_util_terraza: float | None = Field(None, description="Superficie útil + terraza, m²", examples=[85.5])
    sup_util_vivienda: float | None = Field(None, description="Superficie útil vivienda, m²", examples=[70.0])
    sup_util_terrazas: float | None = Field(None, description="Superficie útil terrazas, m²", examples=[15.5])
    pvp_final: float | None = Field(None, description="Final sale price in EUR", examples=[225000.0])
    observaciones: str | None = None
    estado: Estado = Field(..., description="LIBRE | BLOQUEADA | RESERVADA")
    gestor_id: str | None = None
    responsable_id: str | None = None
    gestor: PersonaRef | None = None
    responsable: PersonaRef | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ViviendaListResponse(BaseModel):
    """Filtered unit list; ``total`` counts units before filtering."""
    total: int = Field(..., description="Units in the inventory")
    filtered: int = Field(..., description="Units matching the filters")
    items: list[ViviendaOut]


class TransicionesOut(BaseModel):
    estado: Estado = Field(..., description="Current estado of the unit")
    transiciones: list[Estado] = Field(..., description="Estados offered as next step")


class FilterOptionsOut(BaseModel):
    portales: list[str] = Field(default_factory=list, examples=[["1", "2"]])
    tipologias: list[str] = Field(default_factory=list, examples=[["Ático", "Piso"]])


# ── State changes ─────────────────────────────────────────────────────────────

class CambioEstadoIn(BaseModel):
    """Request body of POST /viviendas/{id}/estado."""
    a_estado: str = Field(..., description="Target estado", examples=["RESERVADA"])
    gestor_id: str | None = Field(None, description="Persona id to assign as gestor")
    responsable_id: str | None = Field(None, description="Persona id to assign as responsable")
    motivo: str | None = Field(None, description="Reason; required unless a_estado is LIBRE",
                               examples=["Señal entregada"])


class CambioEstadoOut(_FromDomain):
    """One audit record of the state history."""
    id: str
    vivienda_id: str
    codigo_unique: str | None = None
    de_estado: Estado | None = Field(None, description="Null for the initial assignment")
    a_estado: Estado
    gestor_id: str | None = None
    responsable_id: str | None = None
    gestor_nombre: str | None = None
    responsable_nombre: str | None = None
    motivo: str | None = None
    actor_user_id: str | None = None
    actor_nombre: str | None = None
    created_at: datetime | None = None


class HistorialResponse(BaseModel):
    total: int = Field(..., description="Records in the history")
    filtered: int = Field(..., description="Records matching the filters")
    items: list[CambioEstadoOut]


class NotificationFailureOut(BaseModel):
    codigo_unique: str | None = None
    a_estado: str | None = None
    error: str
    failed_at: str | None = None


# ── Dashboard ─────────────────────────────────────────────────────────────────

class KpisOut(BaseModel):
    total: int = Field(..., examples=[120])
    libres: int = Field(..., examples=[80])
    bloqueadas: int = Field(..., examples=[25])
    reservadas: int = Field(..., examples=[15])


class ChartPointOut(BaseModel):
    name: str = Field(..., examples=["Libres"])
    value: int = Field(..., examples=[80])
    color: str = Field(..., examples=["#10b981"])


class DashboardSummaryOut(BaseModel):
    kpis: KpisOut
    chart: list[ChartPointOut]
    recent_changes: list[CambioEstadoOut]


# ── Import ────────────────────────────────────────────────────────────────────

class RowErrorOut(BaseModel):
    row: int = Field(..., description="1-based sheet row number", examples=[3])
    error: str = Field(..., examples=["Portal es obligatorio"])
    data: dict[str, Any] = Field(default_factory=dict)


class ImportResultOut(BaseModel):
    filename: str
    status: ImportStatus
    total_rows: int
    success: int
    errors: int
    partial_failure: str | None = Field(
        None, description="Summary when some rows succeeded and some failed",
    )
    details: list[RowErrorOut] = Field(default_factory=list)
    job_id: str | None = None


class PreviewRowOut(BaseModel):
    row: int
    data: dict[str, Any]
    errors: list[str] = Field(default_factory=list)


class PreviewOut(BaseModel):
    filename: str
    total_rows: int
    rows: list[PreviewRowOut]


class ImportJobOut(_FromDomain):
    id: str | None = None
    filename: str | None = None
    status: ImportStatus
    total_rows: int
    ok_rows: int
    error_rows: int
    log: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


# ── Errors ────────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    error: str = Field(..., examples=["Validation error"])
    detail: str | None = Field(None, examples=["El motivo es obligatorio para el estado RESERVADA"])
    status_code: int = Field(..., examples=[400])
