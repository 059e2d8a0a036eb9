"""
Tests for EstadoService.change_estado: inventario/service.py

Covers the guarded state change end to end against the in-memory store:
role checks and validation happen before the backend is touched, the
audit record names the overwritten state, and the notification runs
detached from the result.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import FailingNotifier
from inventario.exceptions import (
    InvalidEstado,
    MissingReason,
    NoOpTransition,
    NotFoundError,
    PermissionDenied,
    RemoteOperationError,
)
from inventario.models import Estado
from inventario.notifications import NotificationDispatcher
from inventario.service import EstadoService
from store.memory import MemoryRepository


class SpyRepository(MemoryRepository):
    """Counts change_estado calls and can be told to fail them."""

    def __init__(self, *args, fail_with=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.change_calls = []
        self.fail_with = fail_with

    def change_estado(self, cmd):
        self.change_calls.append(cmd)
        if self.fail_with is not None:
            raise self.fail_with
        return super().change_estado(cmd)


@pytest.fixture()
def spy(viviendas, personas, profiles):
    return SpyRepository(viviendas=viviendas, personas=personas, profiles=profiles)


class TestChangeEstado:
    def test_libre_to_bloqueada(self, spy, gestor_session, dispatcher):
        service = EstadoService(spy, dispatcher)
        unit = service.load_unit("v1")
        cambio = service.change_estado(unit, "BLOQUEADA", gestor_session,
                                       gestor_id="p-juan", motivo="Cliente visita")
        assert cambio.de_estado == Estado.LIBRE
        assert cambio.a_estado == Estado.BLOQUEADA
        assert cambio.actor_user_id == "u-gestor"
        assert cambio.motivo == "Cliente visita"
        assert cambio.codigo_unique == "1-0-A"
        assert spy.get_unit("v1").estado == Estado.BLOQUEADA

    def test_audit_record_appended(self, spy, admin_session):
        before = len(spy.get_cambios())
        service = EstadoService(spy)
        service.change_estado(service.load_unit("v3"), Estado.LIBRE, admin_session)
        cambios = spy.get_cambios()
        assert len(cambios) == before + 1
        newest = cambios[0]
        assert newest.vivienda_id == "v3"
        assert newest.de_estado == Estado.RESERVADA
        assert newest.a_estado == Estado.LIBRE

    def test_assignment_replaced_and_cleared(self, spy, admin_session):
        service = EstadoService(spy)
        service.change_estado(service.load_unit("v2"), "RESERVADA", admin_session,
                              gestor_id="p-maria", responsable_id=None,
                              motivo="Reserva firmada")
        unit = spy.get_unit("v2")
        assert unit.gestor_id == "p-maria"
        assert unit.responsable_id is None
        assert unit.gestor.nombre == "María Pérez"

    def test_motivo_is_trimmed(self, spy, admin_session):
        service = EstadoService(spy)
        cambio = service.change_estado(service.load_unit("v1"), "RESERVADA",
                                       admin_session, motivo="  Señal  ")
        assert cambio.motivo == "Señal"

    def test_blank_ids_become_none(self, spy, admin_session):
        service = EstadoService(spy)
        cambio = service.change_estado(service.load_unit("v1"), "RESERVADA",
                                       admin_session, gestor_id="  ", motivo="x")
        assert cambio.gestor_id is None

    def test_unknown_unit(self, spy):
        with pytest.raises(NotFoundError):
            EstadoService(spy).load_unit("missing")


class TestNoRemoteCallOnRejection:
    def test_noop_rejected_before_backend(self, spy, admin_session):
        service = EstadoService(spy)
        with pytest.raises(NoOpTransition):
            service.change_estado(service.load_unit("v1"), "LIBRE", admin_session)
        assert spy.change_calls == []

    def test_missing_motivo_rejected_before_backend(self, spy, admin_session):
        service = EstadoService(spy)
        with pytest.raises(MissingReason):
            service.change_estado(service.load_unit("v1"), "BLOQUEADA", admin_session,
                                  motivo="")
        assert spy.change_calls == []

    def test_invalid_estado_rejected_before_backend(self, spy, admin_session):
        service = EstadoService(spy)
        with pytest.raises(InvalidEstado):
            service.change_estado(service.load_unit("v1"), "VENDIDA", admin_session,
                                  motivo="x")
        assert spy.change_calls == []

    def test_viewer_rejected_before_backend(self, spy, viewer_session):
        service = EstadoService(spy)
        with pytest.raises(PermissionDenied):
            service.change_estado(service.load_unit("v1"), "BLOQUEADA",
                                  viewer_session, motivo="x")
        assert spy.change_calls == []

    def test_promotor_may_edit(self, spy, promotor_session):
        service = EstadoService(spy)
        service.change_estado(service.load_unit("v1"), "BLOQUEADA",
                              promotor_session, motivo="x")
        assert len(spy.change_calls) == 1


class TestBackendFailure:
    def test_backend_error_propagates_with_message(self, viviendas, personas,
                                                   admin_session, dispatcher, notifier):
        spy = SpyRepository(viviendas=viviendas, personas=personas,
                            fail_with=RemoteOperationError("row-level security violation"))
        service = EstadoService(spy, dispatcher)
        with pytest.raises(RemoteOperationError) as exc:
            service.change_estado(service.load_unit("v1"), "BLOQUEADA",
                                  admin_session, motivo="x")
        assert exc.value.message == "row-level security violation"
        dispatcher.flush(timeout=5)
        assert notifier.payloads == []
        assert spy.get_unit("v1").estado == Estado.LIBRE


class TestStaleCopy:
    def test_second_writer_to_same_estado_rejected(self, spy, admin_session,
                                                   gestor_session, dispatcher, notifier):
        service = EstadoService(spy, dispatcher)
        first = service.load_unit("v1")
        second = service.load_unit("v1")
        service.change_estado(first, "BLOQUEADA", admin_session, motivo="a")
        with pytest.raises(NoOpTransition):
            service.change_estado(second, "BLOQUEADA", gestor_session, motivo="b")

        history = [(c.de_estado, c.a_estado)
                   for c in spy.get_cambios() if c.vivienda_id == "v1"]
        assert history == [(Estado.LIBRE, Estado.BLOQUEADA), (None, Estado.LIBRE)]
        dispatcher.flush(timeout=5)
        assert len(notifier.payloads) == 1

    def test_stale_copy_to_other_estado_records_real_prior(self, spy, admin_session):
        service = EstadoService(spy)
        first = service.load_unit("v1")
        second = service.load_unit("v1")
        service.change_estado(first, "BLOQUEADA", admin_session, motivo="a")
        cambio = service.change_estado(second, "RESERVADA", admin_session, motivo="b")
        assert cambio.de_estado == Estado.BLOQUEADA


class TestNotification:
    def test_payload_sent_after_change(self, spy, gestor_session, dispatcher, notifier):
        service = EstadoService(spy, dispatcher)
        service.change_estado(service.load_unit("v1"), "RESERVADA", gestor_session,
                              gestor_id="p-juan", responsable_id="p-maria",
                              motivo="Señal")
        dispatcher.flush(timeout=5)
        assert len(notifier.payloads) == 1
        payload = notifier.payloads[0]
        assert payload["codigo_unique"] == "1-0-A"
        assert payload["de_estado"] == "LIBRE"
        assert payload["a_estado"] == "RESERVADA"
        assert payload["gestor"] == {"id": "p-juan", "nombre": "Juan L. Herrero"}
        assert payload["responsable"] == {"id": "p-maria", "nombre": "María Pérez"}
        assert payload["actor_email"] == "gestor@example.com"
        assert payload["fecha_iso"]
        assert dispatcher.sent == 1

    def test_failed_notification_does_not_affect_result(self, spy, admin_session):
        failing = NotificationDispatcher(FailingNotifier(), max_workers=1)
        try:
            service = EstadoService(spy, failing)
            cambio = service.change_estado(service.load_unit("v1"), "BLOQUEADA",
                                           admin_session, motivo="x")
            failing.flush(timeout=5)
        finally:
            failing.shutdown()
        assert cambio.a_estado == Estado.BLOQUEADA
        assert spy.get_unit("v1").estado == Estado.BLOQUEADA
        assert len(failing.failures) == 1
        assert "edge function down" in failing.failures[0].error
        assert failing.sent == 0
