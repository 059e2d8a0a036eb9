"""
Tests for store/sqlite.py and utils/database.py

Uses a temporary on-disk database so WAL pragmas and reconnects are
exercised, plus the build script that creates and seeds it.
"""
import json
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from build_viviendas_db import build_database
from inventario.exceptions import NoOpTransition, RemoteOperationError
from inventario.models import (
    ChangeEstadoCommand,
    Estado,
    ImportJob,
    ImportStatus,
    Vivienda,
)
from store.sqlite import SQLiteRepository
from utils.database import connect, get_table_count, immediate_transaction, table_exists


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "viviendas.sqlite"


@pytest.fixture()
def sqlite_repo(db_path, personas, profiles, viviendas):
    repo = SQLiteRepository(db_path)
    for p in personas:
        repo.add_persona(p)
    for p in profiles:
        repo.add_profile(p)
    for v in viviendas:
        repo.upsert_unit(v)
    yield repo
    repo.close()


class TestSchema:
    def test_tables_created(self, db_path):
        repo = SQLiteRepository(db_path)
        try:
            for table in ("personas", "profiles", "viviendas",
                          "cambios_estado", "import_jobs"):
                assert table_exists(repo.connection, table)
        finally:
            repo.close()

    def test_estado_check_constraint(self, sqlite_repo):
        with pytest.raises(sqlite3.IntegrityError):
            sqlite_repo.connection.execute(
                "UPDATE viviendas SET estado = 'VENDIDA' WHERE id = 'v1'")

    def test_wal_mode_on_disk(self, db_path):
        conn = connect(db_path)
        try:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            assert mode.lower() == "wal"
        finally:
            conn.close()

    def test_immediate_transaction_rolls_back(self, db_path):
        conn = connect(db_path)
        conn.execute("CREATE TABLE t (x INTEGER)")
        with pytest.raises(ValueError):
            with immediate_transaction(conn):
                conn.execute("INSERT INTO t VALUES (1)")
                raise ValueError("boom")
        assert get_table_count(conn, "t") == 0
        conn.close()


class TestReads:
    def test_units_ordered_with_personas(self, sqlite_repo):
        units = sqlite_repo.get_units()
        assert [v.codigo_unique for v in units] == ["1-0-A", "1-1-B", "2-4-A"]
        assert units[0].gestor.nombre == "Juan L. Herrero"
        assert units[1].responsable.nombre == "María Pérez"
        assert units[0].pvp_final == 225000.0

    def test_active_personas_only(self, sqlite_repo):
        names = [p.nombre for p in sqlite_repo.get_personas()]
        assert "Antiguo Gestor" not in names
        assert len(sqlite_repo.get_personas(active_only=False)) == 3

    def test_initial_audit_records(self, sqlite_repo):
        cambios = sqlite_repo.get_cambios()
        assert len(cambios) == 3
        assert all(c.de_estado is None for c in cambios)
        assert {c.codigo_unique for c in cambios} == {"1-0-A", "1-1-B", "2-4-A"}

    def test_survives_reconnect(self, db_path, sqlite_repo):
        other = SQLiteRepository(db_path)
        try:
            assert len(other.get_units()) == 3
        finally:
            other.close()


class TestWrites:
    def test_change_estado_is_atomic_with_audit(self, sqlite_repo):
        cambio = sqlite_repo.change_estado(ChangeEstadoCommand(
            vivienda_id="v1", a_estado=Estado.RESERVADA, actor_user_id="u-admin",
            gestor_id="p-maria", motivo="Señal",
        ))
        assert cambio.de_estado == Estado.LIBRE
        unit = sqlite_repo.get_unit("v1")
        assert unit.estado == Estado.RESERVADA
        assert unit.gestor_id == "p-maria"
        newest = sqlite_repo.get_cambios(limit=1)[0]
        assert newest.id == cambio.id
        assert newest.actor_nombre == "Ada Admin"
        assert newest.gestor_nombre == "María Pérez"

    def test_change_to_current_estado_rejected_without_audit(self, sqlite_repo):
        cmd = ChangeEstadoCommand(vivienda_id="v1", a_estado=Estado.BLOQUEADA,
                                  actor_user_id="u-admin", motivo="a")
        sqlite_repo.change_estado(cmd)
        before = len(sqlite_repo.get_cambios())
        with pytest.raises(NoOpTransition):
            sqlite_repo.change_estado(ChangeEstadoCommand(
                vivienda_id="v1", a_estado=Estado.BLOQUEADA,
                actor_user_id="u-gestor", motivo="b"))
        assert len(sqlite_repo.get_cambios()) == before
        newest = sqlite_repo.get_cambios(limit=1)[0]
        assert (newest.de_estado, newest.a_estado) == (Estado.LIBRE, Estado.BLOQUEADA)
        assert newest.motivo == "a"

    def test_change_unknown_unit(self, sqlite_repo):
        with pytest.raises(RemoteOperationError):
            sqlite_repo.change_estado(ChangeEstadoCommand(
                vivienda_id="nope", a_estado=Estado.LIBRE, actor_user_id="u-admin"))

    def test_unknown_persona_rejected_without_partial_write(self, sqlite_repo):
        before = len(sqlite_repo.get_cambios())
        with pytest.raises(RemoteOperationError):
            sqlite_repo.change_estado(ChangeEstadoCommand(
                vivienda_id="v1", a_estado=Estado.BLOQUEADA, actor_user_id="u-admin",
                gestor_id="ghost", motivo="x"))
        assert sqlite_repo.get_unit("v1").estado == Estado.LIBRE
        assert len(sqlite_repo.get_cambios()) == before

    def test_upsert_by_codigo(self, sqlite_repo):
        updated = sqlite_repo.upsert_unit(
            Vivienda(portal="1", planta="0", letra="a", tipologia="Loft",
                     estado=Estado.BLOQUEADA),
            actor_user_id="u-gestor",
        )
        assert updated.id == "v1"
        assert len(sqlite_repo.get_units()) == 3
        assert sqlite_repo.get_unit("v1").tipologia == "Loft"
        newest = sqlite_repo.get_cambios(limit=1)[0]
        assert (newest.de_estado, newest.a_estado) == (Estado.LIBRE, Estado.BLOQUEADA)
        assert newest.actor_user_id == "u-gestor"

    def test_upsert_same_estado_not_audited(self, sqlite_repo):
        before = len(sqlite_repo.get_cambios())
        sqlite_repo.upsert_unit(Vivienda(portal="1", planta="0", letra="A",
                                         observaciones="Vistas"))
        assert len(sqlite_repo.get_cambios()) == before

    def test_import_jobs(self, sqlite_repo):
        job = sqlite_repo.append_import_job(ImportJob(
            filename="lote.xlsx", status=ImportStatus.ERROR, total_rows=2,
            ok_rows=1, error_rows=1,
            log={"errors": [{"row": 3, "error": "Portal es obligatorio", "data": {}}]},
        ))
        assert job.id
        jobs = sqlite_repo.get_import_jobs()
        assert jobs[0].log["errors"][0]["row"] == 3
        assert jobs[0].status == ImportStatus.ERROR

    def test_health(self, sqlite_repo):
        assert sqlite_repo.health() == {"backend": "sqlite", "viviendas": 3}


class TestBuildScript:
    def test_build_and_seed(self, tmp_path):
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps({
            "personas": [{"id": "p1", "nombre": "Ana López"}],
            "profiles": [{"id": "u1", "email": "ana@example.com", "role": "gestor"}],
        }), encoding="utf-8")
        counts = build_database(tmp_path / "v.sqlite", seed=seed)
        assert counts["personas"] == 1
        assert counts["profiles"] == 1
        assert counts["viviendas"] == 0

    def test_rebuild_clears_data(self, db_path, sqlite_repo):
        counts = build_database(db_path, rebuild=True)
        assert counts["viviendas"] == 0
        assert counts["cambios_estado"] == 0
