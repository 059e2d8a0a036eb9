"""
SQLite repository for single-machine deployments.

One connection per repository, shared across FastAPI worker threads and
serialised by a lock.  ``change_estado`` reads the prior state, updates the
unit and appends the audit row inside one ``BEGIN IMMEDIATE`` transaction,
so the audit record always names the state that was actually overwritten.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path

from inventario.exceptions import NoOpTransition, RemoteOperationError
from inventario.models import (
    VIVIENDA_COLUMNS,
    CambioEstado,
    ChangeEstadoCommand,
    Estado,
    ImportJob,
    Persona,
    Profile,
    Vivienda,
    build_codigo,
)
from store.base import Repository
from utils.common import isoformat, utc_now
from utils.database import connect, immediate_transaction, query_to_dicts

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS personas (
    id          TEXT PRIMARY KEY,
    nombre      TEXT NOT NULL,
    email       TEXT,
    tipo        TEXT NOT NULL DEFAULT 'GESTOR'
                CHECK (tipo IN ('GESTOR', 'PROMOTOR')),
    activo      INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT,
    updated_at  TEXT
);

CREATE TABLE IF NOT EXISTS profiles (
    id          TEXT PRIMARY KEY,
    email       TEXT NOT NULL,
    full_name   TEXT,
    role        TEXT NOT NULL DEFAULT 'viewer'
);

CREATE TABLE IF NOT EXISTS viviendas (
    id                  TEXT PRIMARY KEY,
    portal              TEXT,
    planta              TEXT,
    letra               TEXT,
    tipologia           TEXT,
    orientacion         TEXT,
    dormitorios         INTEGER,
    sup_util_terraza    REAL,
    sup_util_vivienda   REAL,
    sup_util_terrazas   REAL,
    pvp_final           REAL,
    observaciones       TEXT,
    estado              TEXT NOT NULL DEFAULT 'LIBRE'
                        CHECK (estado IN ('LIBRE', 'BLOQUEADA', 'RESERVADA')),
    gestor_id           TEXT REFERENCES personas(id),
    responsable_id      TEXT REFERENCES personas(id),
    codigo_unique       TEXT NOT NULL UNIQUE,
    created_at          TEXT,
    updated_at          TEXT
);

CREATE TABLE IF NOT EXISTS cambios_estado (
    id              TEXT PRIMARY KEY,
    vivienda_id     TEXT NOT NULL REFERENCES viviendas(id),
    de_estado       TEXT,
    a_estado        TEXT NOT NULL,
    gestor_id       TEXT,
    responsable_id  TEXT,
    motivo          TEXT,
    actor_user_id   TEXT,
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cambios_created ON cambios_estado(created_at);

CREATE TABLE IF NOT EXISTS import_jobs (
    id          TEXT PRIMARY KEY,
    filename    TEXT,
    status      TEXT NOT NULL,
    total_rows  INTEGER NOT NULL DEFAULT 0,
    ok_rows     INTEGER NOT NULL DEFAULT 0,
    error_rows  INTEGER NOT NULL DEFAULT 0,
    log         TEXT,
    created_at  TEXT NOT NULL
);
"""

_TABLES = ("cambios_estado", "import_jobs", "viviendas", "profiles", "personas")


def create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA)


def drop_schema(conn: sqlite3.Connection) -> None:
    for table in _TABLES:
        conn.execute(f"DROP TABLE IF EXISTS {table}")


def _new_id() -> str:
    return str(uuid.uuid4())


class SQLiteRepository(Repository):
    name = "sqlite"

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = db_path
        self._conn = connect(db_path)
        self._lock = threading.RLock()
        create_schema(self._conn)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _query(self, sql: str, params: tuple = ()) -> list[dict]:
        with self._lock:
            return query_to_dicts(self._conn, sql, params)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _load_units(self) -> list[Vivienda]:
        rows = self._query("SELECT * FROM viviendas ORDER BY codigo_unique")
        return [Vivienda.from_record(r) for r in rows]

    def _load_unit(self, vivienda_id: str) -> Vivienda | None:
        rows = self._query("SELECT * FROM viviendas WHERE id = ?", (vivienda_id,))
        return Vivienda.from_record(rows[0]) if rows else None

    def _load_personas(self) -> list[Persona]:
        rows = self._query("SELECT * FROM personas ORDER BY nombre")
        return [Persona.from_record(r) for r in rows]

    def get_profiles(self) -> list[Profile]:
        rows = self._query(
            "SELECT * FROM profiles ORDER BY COALESCE(full_name, email)"
        )
        return [Profile.from_record(r) for r in rows]

    def _load_cambios(self, limit: int | None = None) -> list[CambioEstado]:
        sql = "SELECT * FROM cambios_estado ORDER BY created_at DESC, rowid DESC"
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (limit,)
        return [CambioEstado.from_record(r) for r in self._query(sql, params)]

    def get_import_jobs(self, limit: int = 20) -> list[ImportJob]:
        rows = self._query(
            "SELECT * FROM import_jobs ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        for r in rows:
            r["log"] = json.loads(r["log"]) if r["log"] else {"errors": []}
        return [ImportJob.from_record(r) for r in rows]

    # ── Writes ────────────────────────────────────────────────────────────────

    def _insert_cambio(self, cambio: CambioEstado) -> None:
        rec = cambio.to_record()
        cols = ", ".join(rec)
        marks = ", ".join("?" for _ in rec)
        self._conn.execute(
            f"INSERT INTO cambios_estado ({cols}) VALUES ({marks})",
            tuple(rec.values()),
        )

    def upsert_unit(self, vivienda: Vivienda,
                    actor_user_id: str | None = None) -> Vivienda:
        rec = vivienda.to_record()
        if not rec["codigo_unique"]:
            rec["codigo_unique"] = build_codigo(
                vivienda.portal, vivienda.planta, vivienda.letra
            )
        now = utc_now()
        try:
            with self._lock, immediate_transaction(self._conn):
                row = self._conn.execute(
                    "SELECT id, estado, created_at FROM viviendas "
                    "WHERE codigo_unique = ?",
                    (rec["codigo_unique"],),
                ).fetchone()
                rec["updated_at"] = isoformat(now)
                if row is None:
                    rec["id"] = rec["id"] or _new_id()
                    rec["created_at"] = rec["created_at"] or isoformat(now)
                    prior = None
                else:
                    rec["id"] = row["id"]
                    rec["created_at"] = row["created_at"]
                    prior = Estado(row["estado"])

                cols = ", ".join(VIVIENDA_COLUMNS)
                marks = ", ".join("?" for _ in VIVIENDA_COLUMNS)
                updates = ", ".join(
                    f"{c} = excluded.{c}" for c in VIVIENDA_COLUMNS
                    if c not in ("id", "codigo_unique", "created_at")
                )
                self._conn.execute(
                    f"INSERT INTO viviendas ({cols}) VALUES ({marks}) "
                    f"ON CONFLICT(codigo_unique) DO UPDATE SET {updates}",
                    tuple(rec[c] for c in VIVIENDA_COLUMNS),
                )
                estado = Estado(rec["estado"])
                if row is None or prior != estado:
                    self._insert_cambio(CambioEstado(
                        id=_new_id(),
                        vivienda_id=rec["id"],
                        de_estado=prior,
                        a_estado=estado,
                        gestor_id=rec["gestor_id"],
                        responsable_id=rec["responsable_id"],
                        actor_user_id=actor_user_id,
                        created_at=now,
                    ))
        except sqlite3.Error as e:
            raise RemoteOperationError(str(e)) from e
        return Vivienda.from_record(rec)

    def change_estado(self, cmd: ChangeEstadoCommand) -> CambioEstado:
        now = utc_now()
        try:
            with self._lock, immediate_transaction(self._conn):
                row = self._conn.execute(
                    "SELECT estado FROM viviendas WHERE id = ?",
                    (cmd.vivienda_id,),
                ).fetchone()
                if row is None:
                    raise RemoteOperationError(
                        f"Vivienda {cmd.vivienda_id} no encontrada"
                    )
                prior = Estado(row["estado"])
                if prior == cmd.a_estado:
                    raise NoOpTransition(
                        f"La vivienda ya está en estado {prior.value}"
                    )
                self._conn.execute(
                    "UPDATE viviendas SET estado = ?, gestor_id = ?, "
                    "responsable_id = ?, updated_at = ? WHERE id = ?",
                    (cmd.a_estado.value, cmd.gestor_id, cmd.responsable_id,
                     isoformat(now), cmd.vivienda_id),
                )
                cambio = CambioEstado(
                    id=_new_id(),
                    vivienda_id=cmd.vivienda_id,
                    de_estado=prior,
                    a_estado=cmd.a_estado,
                    gestor_id=cmd.gestor_id,
                    responsable_id=cmd.responsable_id,
                    motivo=cmd.motivo,
                    actor_user_id=cmd.actor_user_id,
                    created_at=now,
                )
                self._insert_cambio(cambio)
        except sqlite3.Error as e:
            raise RemoteOperationError(str(e)) from e
        logger.debug("estado %s -> %s for %s", cambio.de_estado.value,
                     cambio.a_estado.value, cmd.vivienda_id)
        return cambio

    def append_import_job(self, job: ImportJob) -> ImportJob:
        rec = job.to_record()
        rec["id"] = rec["id"] or _new_id()
        rec["created_at"] = rec["created_at"] or isoformat(utc_now())
        params = dict(rec, log=json.dumps(rec["log"], ensure_ascii=False, default=str))
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO import_jobs (id, filename, status, total_rows, "
                    "ok_rows, error_rows, log, created_at) VALUES "
                    "(:id, :filename, :status, :total_rows, :ok_rows, "
                    ":error_rows, :log, :created_at)",
                    params,
                )
        except sqlite3.Error as e:
            raise RemoteOperationError(str(e)) from e
        return ImportJob.from_record(rec)

    def add_persona(self, persona: Persona) -> Persona:
        rec = persona.to_record()
        rec["id"] = rec["id"] or _new_id()
        rec["created_at"] = rec["created_at"] or isoformat(utc_now())
        rec["activo"] = int(bool(rec["activo"]))
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO personas (id, nombre, email, tipo, "
                "activo, created_at, updated_at) VALUES (:id, :nombre, :email, "
                ":tipo, :activo, :created_at, :updated_at)",
                rec,
            )
        return Persona.from_record(rec)

    def add_profile(self, profile: Profile) -> Profile:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO profiles (id, email, full_name, role) "
                "VALUES (:id, :email, :full_name, :role)",
                profile.to_record(),
            )
        return profile
