"""
Repository boundary between the inventory logic and its backend.

Concrete stores implement the ``_load_*`` primitives and the writes; this
base class layers the display joins (embedded gestor / responsable
personas, history names and codes) and in-memory filtering on top so every
backend returns identically shaped records.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from inventario.filters import ViviendaFilters, filter_viviendas
from inventario.models import (
    CambioEstado,
    ChangeEstadoCommand,
    ImportJob,
    Persona,
    Profile,
    Vivienda,
)

logger = logging.getLogger(__name__)


class Repository(ABC):
    """Abstract store of units, people, audit history and import jobs."""

    name = "abstract"

    # ── Primitives ────────────────────────────────────────────────────────────

    @abstractmethod
    def _load_units(self) -> list[Vivienda]:
        """All units ordered by codigo_unique, without display joins."""

    @abstractmethod
    def _load_unit(self, vivienda_id: str) -> Vivienda | None:
        ...

    @abstractmethod
    def _load_personas(self) -> list[Persona]:
        """All personas, active or not, ordered by nombre."""

    @abstractmethod
    def get_profiles(self) -> list[Profile]:
        ...

    @abstractmethod
    def _load_cambios(self, limit: int | None = None) -> list[CambioEstado]:
        """Audit records newest first, without display joins."""

    @abstractmethod
    def upsert_unit(self, vivienda: Vivienda,
                    actor_user_id: str | None = None) -> Vivienda:
        """Insert or update a unit keyed by ``codigo_unique``.

        A state change caused by the upsert (including the initial
        assignment of a new unit) is recorded in the audit history.
        """

    @abstractmethod
    def change_estado(self, cmd: ChangeEstadoCommand) -> CambioEstado:
        """Atomically update the unit and append one audit record.

        Raises:
            NoOpTransition: the stored estado already equals ``cmd.a_estado``.
            RemoteOperationError: when the backend rejects the change.
        """

    @abstractmethod
    def append_import_job(self, job: ImportJob) -> ImportJob:
        ...

    @abstractmethod
    def get_import_jobs(self, limit: int = 20) -> list[ImportJob]:
        """Import jobs newest first."""

    @abstractmethod
    def add_persona(self, persona: Persona) -> Persona:
        ...

    @abstractmethod
    def add_profile(self, profile: Profile) -> Profile:
        ...

    def close(self) -> None:
        """Release backend resources."""

    # ── Joined reads ──────────────────────────────────────────────────────────

    def get_personas(self, active_only: bool = True) -> list[Persona]:
        personas = self._load_personas()
        if active_only:
            return [p for p in personas if p.activo]
        return personas

    def _attach_personas(self, units: list[Vivienda]) -> list[Vivienda]:
        by_id = {p.id: p for p in self._load_personas()}
        for v in units:
            v.gestor = by_id.get(v.gestor_id) if v.gestor_id else None
            v.responsable = by_id.get(v.responsable_id) if v.responsable_id else None
        return units

    def get_units(self, filters: ViviendaFilters | None = None) -> list[Vivienda]:
        """Units with embedded personas, optionally filtered in memory."""
        units = self._attach_personas(self._load_units())
        return filter_viviendas(units, filters)

    def get_unit(self, vivienda_id: str) -> Vivienda | None:
        unit = self._load_unit(vivienda_id)
        if unit is None:
            return None
        return self._attach_personas([unit])[0]

    def get_cambios(self, limit: int | None = None) -> list[CambioEstado]:
        """Audit history newest first, with unit code and display names."""
        cambios = self._load_cambios(limit)
        codes = {v.id: v.codigo_unique for v in self._load_units()}
        personas = {p.id: p.nombre for p in self._load_personas()}
        actors = {p.id: p.display_name for p in self.get_profiles()}
        for c in cambios:
            c.codigo_unique = codes.get(c.vivienda_id)
            c.gestor_nombre = personas.get(c.gestor_id) if c.gestor_id else None
            c.responsable_nombre = (
                personas.get(c.responsable_id) if c.responsable_id else None
            )
            c.actor_nombre = actors.get(c.actor_user_id) if c.actor_user_id else None
        return cambios

    def health(self) -> dict:
        """Connectivity probe used by ``/health``."""
        units = self._load_units()
        return {"backend": self.name, "viviendas": len(units)}
