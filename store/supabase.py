"""
Supabase (PostgREST) repository.

Tables are read and written through ``/rest/v1/<table>``; the atomic
state change goes through the ``rpc_change_estado`` stored procedure, which
updates the unit and appends the audit record in one database transaction.
Audit rows written on upsert are the backend's responsibility (trigger on
``viviendas``).

Every failure, transport or HTTP, is raised as ``RemoteOperationError``
carrying the backend's own message.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import requests

from inventario.exceptions import ConfigurationError, RemoteOperationError
from inventario.models import (
    VIVIENDA_COLUMNS,
    CambioEstado,
    ChangeEstadoCommand,
    ImportJob,
    Persona,
    Profile,
    Vivienda,
    build_codigo,
)
from store.base import Repository
from utils.http import RetryStrategy, SessionManager, error_message

logger = logging.getLogger(__name__)

CHANGE_ESTADO_RPC = "rpc_change_estado"


class SupabaseRepository(Repository):
    name = "supabase"

    def __init__(self, url: str | None, api_key: str | None,
                 timeout: float = 10.0,
                 session_manager: SessionManager | None = None,
                 access_token: str | None = None) -> None:
        if not url or not api_key:
            raise ConfigurationError(
                "Supabase backend is selected, but SUPABASE_URL or "
                "SUPABASE_ANON_KEY is missing"
            )
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.access_token = access_token
        self._sessions = session_manager or SessionManager(
            retry_strategy=RetryStrategy(max_retries=2),
        )

    def with_token(self, access_token: str | None) -> "SupabaseRepository":
        """Shallow copy that acts with a user's JWT instead of the anon key.

        The copy shares the pooled HTTP session.
        """
        if not access_token or access_token == self.access_token:
            return self
        clone = copy.copy(self)
        clone.access_token = access_token
        return clone

    def close(self) -> None:
        self._sessions.close()

    # ── Transport ─────────────────────────────────────────────────────────────

    def _headers(self, prefer: str = "") -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, path: str, params: dict | None = None,
                 payload: Any = None, prefer: str = "") -> Any:
        url = f"{self.url}{path}"
        logger.debug("supabase %s %s params=%s", method, path, params)
        try:
            resp = self._sessions.session.request(
                method, url, params=params, json=payload,
                headers=self._headers(prefer), timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteOperationError(f"{path}: {e}") from e
        if resp.status_code >= 400:
            message = error_message(resp)
            logger.warning("supabase %s %s failed: %s %s", method, path,
                           resp.status_code, message)
            raise RemoteOperationError(message)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteOperationError(
                f"Supabase returned non-JSON payload for {path}"
            ) from e

    def _select(self, table: str, **params: str) -> list[dict]:
        params.setdefault("select", "*")
        rows = self._request("GET", f"/rest/v1/{table}", params=params)
        return rows if isinstance(rows, list) else []

    def _insert(self, table: str, payload: dict, prefer: str,
                params: dict | None = None) -> dict:
        rows = self._request("POST", f"/rest/v1/{table}", params=params,
                             payload=payload, prefer=prefer)
        if isinstance(rows, list) and rows:
            return rows[0]
        return payload

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _load_units(self) -> list[Vivienda]:
        rows = self._select("viviendas", order="codigo_unique.asc")
        return [Vivienda.from_record(r) for r in rows]

    def _load_unit(self, vivienda_id: str) -> Vivienda | None:
        rows = self._select("viviendas", id=f"eq.{vivienda_id}", limit="1")
        return Vivienda.from_record(rows[0]) if rows else None

    def _load_personas(self) -> list[Persona]:
        rows = self._select("personas", order="nombre.asc")
        return [Persona.from_record(r) for r in rows]

    def get_personas(self, active_only: bool = True) -> list[Persona]:
        if not active_only:
            return self._load_personas()
        rows = self._select("personas", activo="eq.true", order="nombre.asc")
        return [Persona.from_record(r) for r in rows]

    def get_profiles(self) -> list[Profile]:
        rows = self._select("profiles", select="id,full_name,email,role",
                            order="full_name.asc")
        return [Profile.from_record(r) for r in rows]

    def _load_cambios(self, limit: int | None = None) -> list[CambioEstado]:
        params = {"order": "created_at.desc"}
        if limit:
            params["limit"] = str(limit)
        rows = self._select("cambios_estado", **params)
        return [CambioEstado.from_record(r) for r in rows]

    def get_import_jobs(self, limit: int = 20) -> list[ImportJob]:
        rows = self._select("import_jobs", order="created_at.desc",
                            limit=str(limit))
        return [ImportJob.from_record(r) for r in rows]

    # ── Writes ────────────────────────────────────────────────────────────────

    def upsert_unit(self, vivienda: Vivienda,
                    actor_user_id: str | None = None) -> Vivienda:
        rec = vivienda.to_record()
        if not rec["codigo_unique"]:
            rec["codigo_unique"] = build_codigo(
                vivienda.portal, vivienda.planta, vivienda.letra
            )
        # Server assigns id and timestamps
        payload = {c: rec[c] for c in VIVIENDA_COLUMNS
                   if c not in ("id", "created_at", "updated_at")}
        row = self._insert(
            "viviendas", payload,
            prefer="resolution=merge-duplicates,return=representation",
            params={"on_conflict": "codigo_unique"},
        )
        return Vivienda.from_record(row)

    def change_estado(self, cmd: ChangeEstadoCommand) -> CambioEstado:
        result = self._request(
            "POST", f"/rest/v1/rpc/{CHANGE_ESTADO_RPC}",
            payload={
                "p_vivienda_id": cmd.vivienda_id,
                "p_a_estado": cmd.a_estado.value,
                "p_gestor_id": cmd.gestor_id,
                "p_responsable_id": cmd.responsable_id,
                "p_motivo": cmd.motivo,
                "p_actor_user_id": cmd.actor_user_id,
            },
        )
        if isinstance(result, list):
            result = result[0] if result else None
        if isinstance(result, dict) and result.get("a_estado"):
            return CambioEstado.from_record(result)
        # Procedure returned no row: read back the record it just wrote
        rows = self._select("cambios_estado", vivienda_id=f"eq.{cmd.vivienda_id}",
                            order="created_at.desc", limit="1")
        if not rows:
            raise RemoteOperationError(
                f"{CHANGE_ESTADO_RPC} did not record a change for {cmd.vivienda_id}"
            )
        return CambioEstado.from_record(rows[0])

    def append_import_job(self, job: ImportJob) -> ImportJob:
        rec = job.to_record()
        payload = {k: v for k, v in rec.items()
                   if k not in ("id", "created_at") or v is not None}
        row = self._insert("import_jobs", payload, prefer="return=representation")
        return ImportJob.from_record(row)

    def add_persona(self, persona: Persona) -> Persona:
        rec = {k: v for k, v in persona.to_record().items() if v is not None}
        row = self._insert("personas", rec, prefer="return=representation")
        return Persona.from_record(row)

    def add_profile(self, profile: Profile) -> Profile:
        row = self._insert(
            "profiles", profile.to_record(),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return Profile.from_record(row)
