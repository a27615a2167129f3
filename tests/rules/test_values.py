"""Tests for literal casting and result cell decoding."""

import math
from datetime import date, datetime
from decimal import Decimal

import pytest

from sqlassert.core.models.base import DataType, Dialect
from sqlassert.rules.errors import ConfigurationError, ConversionError, EmptyResult, FormatError
from sqlassert.rules.values import cast_literal, coerce_value, decode_cell, parse_temporal_literal


class TestCastLiteral:
    def test_decimal_keeps_written_digits(self):
        assert cast_literal(2.27, DataType.DECIMAL) == Decimal("2.27")
        assert cast_literal("19.99", DataType.DECIMAL) == Decimal("19.99")
        assert cast_literal(3, DataType.DECIMAL) == Decimal(3)

    def test_float(self):
        value = cast_literal(Decimal("1.5"), DataType.FLOAT)
        assert value == 1.5
        assert isinstance(value, float)

    def test_integer_accepts_integral_values(self):
        assert cast_literal(7, DataType.INTEGER) == 7
        assert cast_literal(7.0, DataType.INTEGER) == 7
        assert cast_literal("12", DataType.INTEGER) == 12

    def test_integer_rejects_fractions(self):
        with pytest.raises(ConversionError):
            cast_literal(7.5, DataType.INTEGER)

    @pytest.mark.parametrize("value", [True, None, "abc", float("nan"), float("inf")])
    def test_unrepresentable_literals(self, value):
        with pytest.raises(ConversionError):
            cast_literal(value, DataType.DECIMAL)

    @pytest.mark.parametrize("data_type", [DataType.TEXT, DataType.DATE, DataType.DATETIME])
    def test_non_numeric_domain_is_a_configuration_error(self, data_type: DataType):
        with pytest.raises(ConfigurationError):
            cast_literal(1, data_type)


class TestParseTemporalLiteral:
    def test_date_domain_returns_dates(self):
        assert parse_temporal_literal("2020-01-31", DataType.DATE) == date(2020, 1, 31)
        assert parse_temporal_literal("2020-01-31T08:15:00", DataType.DATE) == date(2020, 1, 31)

    def test_datetime_domain_returns_datetimes(self):
        assert parse_temporal_literal("2020-01-31", DataType.DATETIME) == datetime(2020, 1, 31)
        assert parse_temporal_literal("2020-01-31T08:15:00", DataType.DATETIME) == datetime(
            2020, 1, 31, 8, 15
        )

    def test_native_values(self):
        assert parse_temporal_literal(date(2020, 1, 31), DataType.DATETIME) == datetime(
            2020, 1, 31
        )
        assert parse_temporal_literal(datetime(2020, 1, 31, 9), DataType.DATE) == date(
            2020, 1, 31
        )

    def test_unparseable_text(self):
        with pytest.raises(FormatError):
            parse_temporal_literal("31/01/2020", DataType.DATE)

    def test_non_temporal_domain(self):
        with pytest.raises(ConfigurationError):
            parse_temporal_literal("2020-01-31", DataType.INTEGER)


class TestDecodeCell:
    def test_null_is_an_empty_result(self):
        with pytest.raises(EmptyResult):
            decode_cell(None, DataType.TEXT, Dialect.SQLITE)

    def test_sqlite_dates_are_parsed_from_text(self):
        assert decode_cell("2020-01-02", DataType.DATETIME, Dialect.SQLITE) == datetime(
            2020, 1, 2
        )
        assert decode_cell(
            "2020-02-01T03:12:02.321", DataType.DATETIME, Dialect.SQLITE
        ) == datetime(2020, 2, 1, 3, 12, 2, 321000)
        assert decode_cell("2020-05-01", DataType.DATE, Dialect.SQLITE) == date(2020, 5, 1)

    def test_sqlite_bad_date_text(self):
        with pytest.raises(FormatError):
            decode_cell("last tuesday", DataType.DATE, Dialect.SQLITE)

    def test_native_dialects_require_native_dates(self):
        native = datetime(2020, 2, 1, 3, 12)
        assert decode_cell(native, DataType.DATETIME, Dialect.POSTGRES) == native

        with pytest.raises(FormatError):
            decode_cell("2020-02-01", DataType.DATE, Dialect.POSTGRES)

    def test_numbers(self):
        assert decode_cell(2.27, DataType.DECIMAL, Dialect.SQLITE) == Decimal("2.27")
        assert decode_cell(Decimal("4.50"), DataType.DECIMAL, Dialect.POSTGRES) == Decimal("4.5")
        assert decode_cell(3, DataType.FLOAT, Dialect.SQLITE) == 3.0

    def test_float_cells_keep_infinities(self):
        assert decode_cell(float("inf"), DataType.FLOAT, Dialect.POSTGRES) == math.inf
        assert decode_cell(float("-inf"), DataType.FLOAT, Dialect.SQLITE) == -math.inf
        assert math.isnan(decode_cell(float("nan"), DataType.FLOAT, Dialect.SQLITE))

    def test_infinite_decimal_cell_is_a_format_error(self):
        with pytest.raises(FormatError):
            decode_cell(Decimal("Infinity"), DataType.DECIMAL, Dialect.POSTGRES)

    def test_bad_number_is_a_format_error(self):
        with pytest.raises(FormatError):
            decode_cell("n/a", DataType.INTEGER, Dialect.MSSQL)

    def test_text(self):
        assert decode_cell("Mark", DataType.TEXT, Dialect.SQLITE) == "Mark"
        assert decode_cell(b"Mark", DataType.TEXT, Dialect.SQLITE) == "Mark"
        assert decode_cell(17, DataType.TEXT, Dialect.SQLITE) == "17"


def test_coerce_value_reads_interchange_forms():
    assert coerce_value("2020-01-31", DataType.DATE) == date(2020, 1, 31)
    assert coerce_value("2.27", DataType.DECIMAL) == Decimal("2.27")
    assert coerce_value(4, DataType.INTEGER) == 4
    assert coerce_value("Mark", DataType.TEXT) == "Mark"


def test_coerce_value_rejects_infinite_literals_unless_asked():
    with pytest.raises(ConversionError):
        coerce_value(math.inf, DataType.FLOAT)

    assert coerce_value(math.inf, DataType.FLOAT, finite=False) == math.inf
