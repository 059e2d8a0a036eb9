"""In-process repository used by tests, demos and the default config."""

from __future__ import annotations

import copy
import threading
import uuid

from inventario.exceptions import NoOpTransition, RemoteOperationError
from inventario.models import (
    CambioEstado,
    ChangeEstadoCommand,
    ImportJob,
    Persona,
    Profile,
    Vivienda,
    build_codigo,
)
from store.base import Repository
from utils.common import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


class MemoryRepository(Repository):
    """Dict-backed store.

    Reads return copies so callers mutating a record (the base class fills
    in display joins) never alter stored state.  One lock serialises writes.
    """

    name = "memory"

    def __init__(self, viviendas=(), personas=(), profiles=()) -> None:
        self._lock = threading.Lock()
        self._units: dict[str, Vivienda] = {}
        self._personas: dict[str, Persona] = {}
        self._profiles: dict[str, Profile] = {}
        self._cambios: list[CambioEstado] = []
        self._jobs: list[ImportJob] = []
        for p in personas:
            self.add_persona(p)
        for p in profiles:
            self.add_profile(p)
        for v in viviendas:
            self.upsert_unit(v)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _load_units(self) -> list[Vivienda]:
        with self._lock:
            units = [copy.copy(v) for v in self._units.values()]
        return sorted(units, key=lambda v: v.codigo_unique)

    def _load_unit(self, vivienda_id: str) -> Vivienda | None:
        with self._lock:
            unit = self._units.get(vivienda_id)
            return copy.copy(unit) if unit else None

    def _load_personas(self) -> list[Persona]:
        with self._lock:
            personas = [copy.copy(p) for p in self._personas.values()]
        return sorted(personas, key=lambda p: p.nombre)

    def get_profiles(self) -> list[Profile]:
        with self._lock:
            profiles = [copy.copy(p) for p in self._profiles.values()]
        return sorted(profiles, key=lambda p: p.display_name)

    def _load_cambios(self, limit: int | None = None) -> list[CambioEstado]:
        with self._lock:
            cambios = [copy.copy(c) for c in reversed(self._cambios)]
        return cambios[:limit] if limit else cambios

    def get_import_jobs(self, limit: int = 20) -> list[ImportJob]:
        with self._lock:
            jobs = [copy.deepcopy(j) for j in reversed(self._jobs)]
        return jobs[:limit]

    # ── Writes ────────────────────────────────────────────────────────────────

    def _record_cambio(self, unit: Vivienda, de_estado, actor_user_id,
                       motivo=None) -> CambioEstado:
        cambio = CambioEstado(
            id=_new_id(),
            vivienda_id=unit.id,
            de_estado=de_estado,
            a_estado=unit.estado,
            gestor_id=unit.gestor_id,
            responsable_id=unit.responsable_id,
            motivo=motivo,
            actor_user_id=actor_user_id,
            created_at=utc_now(),
        )
        self._cambios.append(cambio)
        return cambio

    def upsert_unit(self, vivienda: Vivienda,
                    actor_user_id: str | None = None) -> Vivienda:
        unit = copy.copy(vivienda)
        unit.gestor = unit.responsable = None
        if not unit.codigo_unique:
            unit.codigo_unique = build_codigo(unit.portal, unit.planta, unit.letra)
        now = utc_now()
        with self._lock:
            existing = next(
                (v for v in self._units.values()
                 if v.codigo_unique == unit.codigo_unique),
                None,
            )
            if existing is None:
                unit.id = unit.id or _new_id()
                unit.created_at = unit.created_at or now
                unit.updated_at = now
                self._units[unit.id] = unit
                self._record_cambio(unit, None, actor_user_id)
            else:
                unit.id = existing.id
                unit.created_at = existing.created_at
                unit.updated_at = now
                self._units[unit.id] = unit
                if existing.estado != unit.estado:
                    self._record_cambio(unit, existing.estado, actor_user_id)
            return copy.copy(unit)

    def change_estado(self, cmd: ChangeEstadoCommand) -> CambioEstado:
        with self._lock:
            unit = self._units.get(cmd.vivienda_id)
            if unit is None:
                raise RemoteOperationError(
                    f"Vivienda {cmd.vivienda_id} no encontrada"
                )
            prior = unit.estado
            if prior == cmd.a_estado:
                raise NoOpTransition(f"La vivienda ya está en estado {prior.value}")
            unit.estado = cmd.a_estado
            unit.gestor_id = cmd.gestor_id
            unit.responsable_id = cmd.responsable_id
            unit.updated_at = utc_now()
            cambio = self._record_cambio(
                unit, prior, cmd.actor_user_id, cmd.motivo
            )
            return copy.copy(cambio)

    def append_import_job(self, job: ImportJob) -> ImportJob:
        stored = copy.deepcopy(job)
        stored.id = stored.id or _new_id()
        stored.created_at = stored.created_at or utc_now()
        with self._lock:
            self._jobs.append(stored)
        return copy.deepcopy(stored)

    def add_persona(self, persona: Persona) -> Persona:
        stored = copy.copy(persona)
        stored.id = stored.id or _new_id()
        stored.created_at = stored.created_at or utc_now()
        with self._lock:
            self._personas[stored.id] = stored
        return copy.copy(stored)

    def add_profile(self, profile: Profile) -> Profile:
        stored = copy.copy(profile)
        with self._lock:
            self._profiles[stored.id] = stored
        return copy.copy(stored)
