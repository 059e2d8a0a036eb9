"""
Tests for store/supabase.py

The PostgREST transport is replaced by a MagicMock session so no network
calls are made; assertions check the requests the repository builds and
how backend failures surface.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inventario.exceptions import ConfigurationError, RemoteOperationError
from inventario.models import ChangeEstadoCommand, Estado, Vivienda
from store.supabase import SupabaseRepository

URL = "https://proj.supabase.co"


def _response(status=200, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.content = b"x" if body is not None or text else b""
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    resp.text = text
    return resp


@pytest.fixture()
def http():
    manager = MagicMock()
    manager.session.request.return_value = _response(body=[])
    return manager


@pytest.fixture()
def supa(http):
    return SupabaseRepository(URL, "anon-key", session_manager=http)


def _call(http, index=-1):
    args, kwargs = http.session.request.call_args_list[index]
    return args[0], args[1], kwargs


class TestConfiguration:
    def test_requires_url_and_key(self):
        with pytest.raises(ConfigurationError):
            SupabaseRepository(None, "k")
        with pytest.raises(ConfigurationError):
            SupabaseRepository(URL, "")

    def test_anon_key_headers(self, supa, http):
        supa.get_profiles()
        _, _, kwargs = _call(http)
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"

    def test_with_token_uses_user_jwt(self, supa, http):
        scoped = supa.with_token("user-jwt")
        scoped.get_profiles()
        _, _, kwargs = _call(http)
        assert kwargs["headers"]["Authorization"] == "Bearer user-jwt"
        assert supa.access_token is None

    def test_with_same_or_no_token_returns_self(self, supa):
        assert supa.with_token(None) is supa


class TestReads:
    def test_units_query(self, supa, http):
        http.session.request.return_value = _response(body=[
            {"id": 7, "portal": "1", "planta": "0", "letra": "A", "estado": "LIBRE",
             "codigo_unique": "1-0-A", "pvp_final": "225000",
             "created_at": "2024-01-15T10:30:00Z"},
        ])
        units = supa._load_units()
        method, url, kwargs = _call(http)
        assert method == "GET"
        assert url == f"{URL}/rest/v1/viviendas"
        assert kwargs["params"]["order"] == "codigo_unique.asc"
        assert units[0].id == "7"
        assert units[0].pvp_final == 225000.0

    def test_active_personas_filter(self, supa, http):
        supa.get_personas(active_only=True)
        _, _, kwargs = _call(http)
        assert kwargs["params"]["activo"] == "eq.true"

    def test_error_message_surfaced(self, supa, http):
        http.session.request.return_value = _response(
            status=401, body={"message": "JWT expired"})
        with pytest.raises(RemoteOperationError) as exc:
            supa.get_profiles()
        assert exc.value.message == "JWT expired"

    def test_transport_error(self, supa, http):
        http.session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RemoteOperationError):
            supa.get_profiles()


class TestWrites:
    def test_change_estado_calls_rpc(self, supa, http):
        http.session.request.return_value = _response(body=[{
            "id": "c1", "vivienda_id": "v1", "de_estado": "LIBRE",
            "a_estado": "BLOQUEADA", "motivo": "Visita",
            "actor_user_id": "u-admin", "created_at": "2024-01-15T10:30:00Z",
        }])
        cambio = supa.change_estado(ChangeEstadoCommand(
            vivienda_id="v1", a_estado=Estado.BLOQUEADA, actor_user_id="u-admin",
            gestor_id="p-juan", motivo="Visita"))
        method, url, kwargs = _call(http)
        assert method == "POST"
        assert url == f"{URL}/rest/v1/rpc/rpc_change_estado"
        assert kwargs["json"]["p_a_estado"] == "BLOQUEADA"
        assert kwargs["json"]["p_gestor_id"] == "p-juan"
        assert kwargs["json"]["p_responsable_id"] is None
        assert cambio.de_estado == Estado.LIBRE

    def test_change_estado_reads_back_when_rpc_returns_nothing(self, supa, http):
        http.session.request.side_effect = [
            _response(),
            _response(body=[{"id": "c9", "vivienda_id": "v1", "de_estado": "LIBRE",
                             "a_estado": "RESERVADA"}]),
        ]
        cambio = supa.change_estado(ChangeEstadoCommand(
            vivienda_id="v1", a_estado=Estado.RESERVADA, actor_user_id="u", motivo="x"))
        assert cambio.id == "c9"
        _, url, kwargs = _call(http)
        assert url.endswith("/rest/v1/cambios_estado")
        assert kwargs["params"]["vivienda_id"] == "eq.v1"

    def test_rpc_rejection_message(self, supa, http):
        http.session.request.return_value = _response(
            status=400, body={"message": "new row violates row-level security policy"})
        with pytest.raises(RemoteOperationError) as exc:
            supa.change_estado(ChangeEstadoCommand(
                vivienda_id="v1", a_estado=Estado.LIBRE, actor_user_id="u"))
        assert "row-level security" in exc.value.message

    def test_upsert_merges_on_codigo(self, supa, http):
        http.session.request.return_value = _response(body=[{
            "id": "v1", "portal": "1", "planta": "0", "letra": "A",
            "estado": "LIBRE", "codigo_unique": "1-0-A",
        }])
        supa.upsert_unit(Vivienda(portal="1", planta="0", letra="A"))
        method, url, kwargs = _call(http)
        assert method == "POST"
        assert kwargs["params"] == {"on_conflict": "codigo_unique"}
        assert "merge-duplicates" in kwargs["headers"]["Prefer"]
        assert "id" not in kwargs["json"]
        assert kwargs["json"]["codigo_unique"] == "1-0-A"
