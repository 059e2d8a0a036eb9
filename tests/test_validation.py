"""
Tests for utils/validation.py and the cell helpers in utils/strings.py

validate_row never raises; it returns every message for a row in column
order.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.strings import cell_text, is_blank, is_numeric, normalize_whitespace, to_number
from utils.validation import is_valid_estado, validate_row


def _row(**overrides):
    row = {"Portal": "1", "Planta": "0", "Letra": "A"}
    row.update(overrides)
    return row


class TestValidateRow:
    def test_minimal_row_is_valid(self):
        assert validate_row(_row()) == []

    def test_numeric_zero_planta_is_present(self):
        assert validate_row(_row(Planta=0)) == []

    def test_missing_address_reports_each_column(self):
        errors = validate_row({"Portal": "", "Planta": None})
        assert errors == [
            "Portal es obligatorio",
            "Planta es obligatoria",
            "Letra es obligatoria",
        ]

    def test_whitespace_counts_as_missing(self):
        assert validate_row(_row(Letra="   ")) == ["Letra es obligatoria"]

    def test_unknown_estado(self):
        assert validate_row(_row(Estado="VENDIDA")) == [
            "Estado debe ser uno de: LIBRE, BLOQUEADA, RESERVADA"
        ]

    def test_lowercase_estado_rejected(self):
        assert validate_row(_row(Estado="libre")) == [
            "Estado debe ser uno de: LIBRE, BLOQUEADA, RESERVADA"
        ]

    def test_estado_surrounding_whitespace_ignored(self):
        assert validate_row(_row(Estado=" RESERVADA ")) == []

    def test_blank_estado_allowed(self):
        assert validate_row(_row(Estado="")) == []

    def test_dormitorios_not_numeric(self):
        assert validate_row(_row(Dormitorios="dos")) == ["Dormitorios debe ser un número"]

    def test_decimal_comma_rejected(self):
        errors = validate_row(_row(**{"PVP Final": "225000,50"}))
        assert errors == ["PVP Final debe ser un número"]

    def test_numeric_strings_accepted(self):
        row = _row(**{
            "Dormitorios": "3",
            "Superficie Útil + Terraza": "85.5",
            "Superficie Útil Vivienda": 70,
            "Superficie Útil Terrazas": 15.5,
            "PVP Final": "225000",
        })
        assert validate_row(row) == []

    def test_all_errors_collected_in_order(self):
        row = {
            "Portal": "",
            "Planta": "1",
            "Letra": "B",
            "Estado": "X",
            "Dormitorios": "tres",
            "Superficie Útil Vivienda": "n/a",
        }
        assert validate_row(row) == [
            "Portal es obligatorio",
            "Estado debe ser uno de: LIBRE, BLOQUEADA, RESERVADA",
            "Dormitorios debe ser un número",
            "Superficie Útil Vivienda debe ser un número",
        ]

    def test_is_valid_estado(self):
        assert is_valid_estado("LIBRE")
        assert not is_valid_estado("libre")
        assert not is_valid_estado("VENDIDA")


class TestCellHelpers:
    @pytest.mark.parametrize("value,expected", [
        (None, True), ("", True), ("  ", True), (0, False), ("0", False),
    ])
    def test_is_blank(self, value, expected):
        assert is_blank(value) is expected

    def test_to_number(self):
        assert to_number("85.5") == 85.5
        assert to_number(3) == 3.0
        assert to_number("") is None

    @pytest.mark.parametrize("value", ["12,5", "abc", "nan", "inf", True])
    def test_to_number_rejects(self, value):
        with pytest.raises(ValueError):
            to_number(value)

    def test_is_numeric(self):
        assert is_numeric("1e3")
        assert not is_numeric("1.000,00")

    def test_cell_text(self):
        assert cell_text(3.0) == "3"
        assert cell_text(2.5) == "2.5"
        assert cell_text("  Piso ") == "Piso"
        assert cell_text("") is None

    def test_normalize_whitespace(self):
        assert normalize_whitespace("Juan  L.\n Herrero") == "Juan L. Herrero"
