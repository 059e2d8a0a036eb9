"""
Tests for inventario/transitions.py and the guard in inventario/service.py

The transition table only drives the options offered to an operator;
validate_change is what actually rejects a request.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inventario.exceptions import InvalidEstado, MissingReason, NoOpTransition
from inventario.models import Estado
from inventario.service import validate_change
from inventario.transitions import (
    TRANSICIONES_VALIDAS,
    allowed_transitions,
    coerce_estado,
    is_transition_offered,
    transition_table,
)


class TestTransitionTable:
    def test_every_estado_has_entry(self):
        assert set(TRANSICIONES_VALIDAS) == set(Estado)

    def test_no_self_transitions(self):
        for origin, targets in TRANSICIONES_VALIDAS.items():
            assert origin not in targets

    def test_libre_offers_bloqueada_and_reservada(self):
        assert allowed_transitions(Estado.LIBRE) == (Estado.BLOQUEADA, Estado.RESERVADA)

    def test_accepts_string_codes(self):
        assert allowed_transitions("bloqueada") == (Estado.LIBRE, Estado.RESERVADA)

    def test_is_transition_offered(self):
        assert is_transition_offered("RESERVADA", "LIBRE")
        assert not is_transition_offered("RESERVADA", "RESERVADA")

    def test_table_is_json_friendly(self):
        table = transition_table()
        assert table["LIBRE"] == ["BLOQUEADA", "RESERVADA"]
        assert all(isinstance(v, list) for v in table.values())


class TestCoerceEstado:
    def test_enum_passthrough(self):
        assert coerce_estado(Estado.RESERVADA) is Estado.RESERVADA

    def test_trims_and_uppercases(self):
        assert coerce_estado("  libre ") == Estado.LIBRE

    @pytest.mark.parametrize("value", ["VENDIDA", "", None, 3])
    def test_unknown_raises(self, value):
        with pytest.raises(InvalidEstado) as exc:
            coerce_estado(value)
        assert "LIBRE, BLOQUEADA, RESERVADA" in exc.value.message


class TestValidateChange:
    def test_same_estado_is_noop(self):
        with pytest.raises(NoOpTransition):
            validate_change(Estado.LIBRE, Estado.LIBRE, "motivo")

    @pytest.mark.parametrize("target", [Estado.BLOQUEADA, Estado.RESERVADA])
    def test_motivo_required(self, target):
        with pytest.raises(MissingReason):
            validate_change(Estado.LIBRE, target, None)

    def test_whitespace_motivo_is_missing(self):
        with pytest.raises(MissingReason):
            validate_change(Estado.LIBRE, Estado.BLOQUEADA, "   ")

    def test_libre_needs_no_motivo(self):
        validate_change(Estado.RESERVADA, Estado.LIBRE, None)

    def test_valid_change_passes(self):
        validate_change(Estado.BLOQUEADA, Estado.RESERVADA, "Señal recibida")
