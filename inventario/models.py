"""
Domain records for the viviendas inventory.

Plain dataclasses shared by every layer: the repositories persist them, the
filters and dashboard read them, and the API converts them to pydantic
response models.  Each record knows how to turn itself into a flat
``dict`` of persistable columns (``to_record``) and back (``from_record``)
so the SQLite and Supabase backends can share one column vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from utils.common import isoformat, parse_timestamp


# ── Enumerations ──────────────────────────────────────────────────────────────


class Estado(str, Enum):
    LIBRE = "LIBRE"
    BLOQUEADA = "BLOQUEADA"
    RESERVADA = "RESERVADA"


class PersonaTipo(str, Enum):
    GESTOR = "GESTOR"
    PROMOTOR = "PROMOTOR"


class Role(str, Enum):
    ADMIN = "admin"
    GESTOR = "gestor"
    PROMOTOR = "promotor"
    VIEWER = "viewer"


class ImportStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    OK = "OK"
    ERROR = "ERROR"


ESTADOS_VALIDOS: tuple[str, ...] = tuple(e.value for e in Estado)


def build_codigo(portal: Any, planta: Any, letra: Any) -> str:
    """Derive the human-readable unique code of a unit from its address.

    Examples:
        build_codigo("1", "0", "a") -> "1-0-A"
        build_codigo(2, 3, "B")     -> "2-3-B"
    """
    parts = [str(p).strip() for p in (portal, planta, letra)]
    parts[2] = parts[2].upper()
    return "-".join(parts)


# ── People ────────────────────────────────────────────────────────────────────


@dataclass
class Persona:
    """A manager (GESTOR) or promoter (PROMOTOR) referenced by units."""

    id: str
    nombre: str
    email: str | None = None
    tipo: PersonaTipo = PersonaTipo.GESTOR
    activo: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "email": self.email,
            "tipo": self.tipo.value,
            "activo": self.activo,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Persona":
        return cls(
            id=str(row["id"]),
            nombre=row["nombre"],
            email=row.get("email"),
            tipo=PersonaTipo(row.get("tipo") or PersonaTipo.GESTOR.value),
            activo=bool(row.get("activo", True)),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass
class Profile:
    """An application user; the actor recorded on every state change."""

    id: str
    email: str
    full_name: str | None = None
    role: Role = Role.VIEWER

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            full_name=row.get("full_name"),
            role=Role(row.get("role") or Role.VIEWER.value),
        )


# ── Housing units ─────────────────────────────────────────────────────────────

# Persisted columns of a vivienda, in table order.
VIVIENDA_COLUMNS = (
    "id", "portal", "planta", "letra", "tipologia", "orientacion",
    "dormitorios", "sup_util_terraza", "sup_util_vivienda",
    "sup_util_terrazas", "pvp_final", "observaciones", "estado",
    "gestor_id", "responsable_id", "codigo_unique",
    "created_at", "updated_at",
)


@dataclass
class Vivienda:
    """One sellable residential unit."""

    id: str | None = None
    portal: str | None = None
    planta: str | None = None
    letra: str | None = None
    tipologia: str | None = None
    orientacion: str | None = None
    dormitorios: int | None = None
    sup_util_terraza: float | None = None
    sup_util_vivienda: float | None = None
    sup_util_terrazas: float | None = None
    pvp_final: float | None = None
    observaciones: str | None = None
    estado: Estado = Estado.LIBRE
    gestor_id: str | None = None
    responsable_id: str | None = None
    codigo_unique: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Display-only joins, never persisted
    gestor: Persona | None = field(default=None, compare=False)
    responsable: Persona | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.estado, Estado):
            self.estado = Estado(self.estado)
        address = (self.portal, self.planta, self.letra)
        if not self.codigo_unique and all(p not in (None, "") for p in address):
            self.codigo_unique = build_codigo(self.portal, self.planta, self.letra)

    def to_record(self) -> dict[str, Any]:
        rec: dict[str, Any] = {}
        for col in VIVIENDA_COLUMNS:
            value = getattr(self, col)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = isoformat(value)
            rec[col] = value
        return rec

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Vivienda":
        kwargs = {col: row.get(col) for col in VIVIENDA_COLUMNS}
        if kwargs["id"] is not None:
            kwargs["id"] = str(kwargs["id"])
        kwargs["estado"] = Estado(kwargs["estado"] or Estado.LIBRE.value)
        kwargs["codigo_unique"] = kwargs["codigo_unique"] or ""
        kwargs["created_at"] = parse_timestamp(kwargs["created_at"])
        kwargs["updated_at"] = parse_timestamp(kwargs["updated_at"])
        if kwargs["dormitorios"] is not None:
            kwargs["dormitorios"] = int(kwargs["dormitorios"])
        for col in ("sup_util_terraza", "sup_util_vivienda",
                    "sup_util_terrazas", "pvp_final"):
            if kwargs[col] is not None:
                kwargs[col] = float(kwargs[col])
        return cls(**kwargs)


# ── Audit trail ───────────────────────────────────────────────────────────────


@dataclass
class CambioEstado:
    """One append-only audit record of a state transition.

    ``de_estado`` is ``None`` only for the record written when a unit is
    first created.  The ``*_nombre`` and ``codigo_unique`` fields are display
    joins filled in by the repository when listing history.
    """

    id: str
    vivienda_id: str
    a_estado: Estado
    de_estado: Estado | None = None
    gestor_id: str | None = None
    responsable_id: str | None = None
    motivo: str | None = None
    actor_user_id: str | None = None
    created_at: datetime | None = None
    codigo_unique: str | None = field(default=None, compare=False)
    gestor_nombre: str | None = field(default=None, compare=False)
    responsable_nombre: str | None = field(default=None, compare=False)
    actor_nombre: str | None = field(default=None, compare=False)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vivienda_id": self.vivienda_id,
            "de_estado": self.de_estado.value if self.de_estado else None,
            "a_estado": self.a_estado.value,
            "gestor_id": self.gestor_id,
            "responsable_id": self.responsable_id,
            "motivo": self.motivo,
            "actor_user_id": self.actor_user_id,
            "created_at": isoformat(self.created_at),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "CambioEstado":
        de = row.get("de_estado")
        return cls(
            id=str(row["id"]),
            vivienda_id=str(row["vivienda_id"]),
            de_estado=Estado(de) if de else None,
            a_estado=Estado(row["a_estado"]),
            gestor_id=row.get("gestor_id"),
            responsable_id=row.get("responsable_id"),
            motivo=row.get("motivo"),
            actor_user_id=row.get("actor_user_id"),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass(frozen=True)
class ChangeEstadoCommand:
    """Arguments of the backend's atomic change-estado procedure."""

    vivienda_id: str
    a_estado: Estado
    actor_user_id: str
    gestor_id: str | None = None
    responsable_id: str | None = None
    motivo: str | None = None


# ── Import jobs ───────────────────────────────────────────────────────────────


@dataclass
class ImportJob:
    """Summary of one spreadsheet import attempt; written once, never updated."""

    filename: str | None
    status: ImportStatus = ImportStatus.PENDIENTE
    total_rows: int = 0
    ok_rows: int = 0
    error_rows: int = 0
    log: dict[str, Any] = field(default_factory=lambda: {"errors": []})
    id: str | None = None
    created_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "status": self.status.value,
            "total_rows": self.total_rows,
            "ok_rows": self.ok_rows,
            "error_rows": self.error_rows,
            "log": self.log,
            "created_at": isoformat(self.created_at),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "ImportJob":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            filename=row.get("filename"),
            status=ImportStatus(row.get("status") or ImportStatus.PENDIENTE.value),
            total_rows=int(row.get("total_rows") or 0),
            ok_rows=int(row.get("ok_rows") or 0),
            error_rows=int(row.get("error_rows") or 0),
            log=row.get("log") or {"errors": []},
            created_at=parse_timestamp(row.get("created_at")),
        )
