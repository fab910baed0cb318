"""
Unit-of-measure mapping and numeric rendering.

Verifies:
- Every unit name and code maps into the fixed table, unknowns to "piece"
- Rendered decimals parse back to the same value
- Non-finite values are rejected instead of defaulting
"""

from decimal import ROUND_HALF_UP, Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from efactura_codec.numbers import format_amount, format_decimal, parse_decimal
from efactura_codec.units import CODE_TO_UNIT, UNIT_TO_CODE, from_unit_code, to_unit_code
from efactura_kernel.exceptions import CodecError

amounts = st.decimals(
    min_value=Decimal("-1000000000000"),
    max_value=Decimal("1000000000000"),
    allow_nan=False,
    allow_infinity=False,
    places=6,
)


class TestUnits:
    @pytest.mark.parametrize(
        "unit, code",
        [("buc", "H87"), ("ORA", "HUR"), (" kg ", "KGM"), ("luna", "MON"), ("zile", "DAY")],
    )
    def test_known_units(self, unit, code):
        assert to_unit_code(unit) == code

    @pytest.mark.parametrize("unit", ["palet", "", None])
    def test_unknown_unit_is_piece(self, unit):
        assert to_unit_code(unit) == "H87"

    @pytest.mark.parametrize(
        "code, unit",
        [("HUR", "ora"), ("C62", "buc"), ("kgm", "kg"), ("PK", "pachet")],
    )
    def test_known_codes(self, code, unit):
        assert from_unit_code(code) == unit

    @pytest.mark.parametrize("code", ["XYZ", "", None])
    def test_unknown_code_is_piece(self, code):
        assert from_unit_code(code) == "buc"

    @given(st.one_of(st.none(), st.text(), st.sampled_from(sorted(UNIT_TO_CODE))))
    def test_every_unit_has_a_known_code(self, unit):
        code = to_unit_code(unit)

        assert code in CODE_TO_UNIT
        assert to_unit_code(from_unit_code(code)) == code

    @given(st.one_of(st.none(), st.text(), st.sampled_from(sorted(CODE_TO_UNIT))))
    def test_every_code_has_a_known_unit(self, code):
        assert from_unit_code(code) in UNIT_TO_CODE


class TestFormatDecimal:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2500.00", "2500"),
            ("25000.09", "25000.09"),
            ("1.50", "1.5"),
            ("0.000", "0"),
            ("-0.00", "0"),
            (Decimal("1E+3"), "1000"),
            (7, "7"),
        ],
    )
    def test_trailing_zeros_dropped(self, value, expected):
        assert format_decimal(value) == expected

    @given(amounts)
    def test_parses_back_to_same_value(self, value):
        text = format_decimal(value)

        assert parse_decimal(text) == value
        assert "E" not in text
        assert not ("." in text and text.endswith("0"))


class TestFormatAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [("10", "10.00"), ("2.345", "2.35"), ("2.344", "2.34"), (Decimal("-1.005"), "-1.01")],
    )
    def test_two_places_half_up(self, value, expected):
        assert format_amount(value) == expected

    def test_custom_places(self):
        assert format_amount("1.23456", places=4) == "1.2346"

    @given(amounts)
    def test_parses_back_rounded(self, value):
        expected = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        assert parse_decimal(format_amount(value)) == expected


class TestParseDecimal:
    def test_parses(self):
        assert parse_decimal(" 12.50 ") == Decimal("12.50")

    @pytest.mark.parametrize("text", [None, "", "   ", "abc"])
    def test_default_for_blank_or_malformed(self, text):
        assert parse_decimal(text) == Decimal("0")
        assert parse_decimal(text, None) is None

    @pytest.mark.parametrize("text", ["NaN", "nan", "sNaN", "Infinity", "-Infinity", " inf "])
    def test_non_finite_rejected(self, text):
        with pytest.raises(CodecError, match="Non-finite numeric value"):
            parse_decimal(text)

        with pytest.raises(CodecError):
            parse_decimal(text, None)
