"""Tests for rule models: construction, domain typing and JSON interchange."""

import typing
from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from sqlassert.core.config import get_settings
from sqlassert.core.models.base import DataType, Dialect
from sqlassert.rules.errors import ConfigurationError, ConversionError, FormatError
from sqlassert.rules.models import (
    RULE_ADAPTER,
    ColumnTotalsShouldMatch,
    DateShouldBeAfter,
    DateShouldBeBefore,
    DateShouldBeBetween,
    DateShouldBeOnOrAfter,
    DateShouldBeOnOrBefore,
    FieldRef,
    NumberShouldBeAtLeast,
    NumberShouldBeAtMost,
    NumberShouldBeBetween,
    NumberShouldBeOneOf,
    RowsMatch,
    RowsShouldBeAtLeast,
    RowsShouldBeAtMost,
    RowsShouldBeBetween,
    RowsShouldEqual,
    Rule,
    TableRef,
    TextLengthsShouldBeBetween,
    TextShouldBeLike,
    TextShouldBeOneOf,
    TextShouldEndWith,
    TextShouldStartWith,
)

TABLE = {"datasource_name": "dw", "table_name": "customer", "dialect": "sqlite"}


def column(field_name: str = "name", **overrides):
    return {**TABLE, "field_name": field_name, **overrides}


def one_of_each() -> list:
    """One instance of every rule variant."""
    side = {"datasource_name": "dw", "table_name": "sale", "dialect": "sqlite"}
    return [
        RowsShouldEqual(**TABLE, rows=4),
        RowsShouldBeAtLeast(**TABLE, min_rows=1),
        RowsShouldBeAtMost(**TABLE, max_rows=10),
        RowsShouldBeBetween(**TABLE, min_rows=1, max_rows=10),
        DateShouldBeAfter(**column("date_added", data_type="DATETIME"), date="2020-01-01"),
        DateShouldBeOnOrAfter(**column("date_added", data_type="DATE"), date="2020-01-01"),
        DateShouldBeBefore(**column("date_added", data_type="DATE"), date="2021-01-01"),
        DateShouldBeOnOrBefore(
            **column("date_added", data_type="DATETIME"), date="2021-01-01T12:30:00"
        ),
        DateShouldBeBetween(
            **column("date_added", data_type="DATE"), min_date="2020-01-01", max_date="2020-12-31"
        ),
        TextShouldBeLike(**column(), fragment="ar"),
        TextShouldStartWith(**column(), prefix="M"),
        TextShouldEndWith(**column(), suffix="y"),
        TextShouldBeOneOf(**column(), values=["Mark", "Mary"]),
        TextLengthsShouldBeBetween(**column(), min_length=3, max_length=40),
        NumberShouldBeAtLeast(**column("price", data_type="DECIMAL"), min_value="2.27"),
        NumberShouldBeAtMost(**column("weight", data_type="FLOAT"), max_value=12.5),
        NumberShouldBeBetween(**column("id", data_type="INTEGER"), min_value=1, max_value=9),
        NumberShouldBeOneOf(**column("price", data_type="DECIMAL"), values=["2.27", "4.50"]),
        RowsMatch(
            source_table=TableRef(**TABLE),
            destination_table=TableRef(**side, subquery="SELECT DISTINCT customer_id FROM sale"),
        ),
        ColumnTotalsShouldMatch(
            source_field=FieldRef(**side, field_name="quantity_sold", data_type="INTEGER"),
            destination_field=FieldRef(**side, field_name="item_id", data_type="INTEGER"),
        ),
    ]


class TestInterchange:
    def test_every_variant_is_covered(self):
        variants = typing.get_args(typing.get_args(Rule)[0])
        assert {type(rule) for rule in one_of_each()} == set(variants)

    @pytest.mark.parametrize("rule", one_of_each(), ids=lambda r: r.kind)
    def test_json_round_trip(self, rule):
        decoded = RULE_ADAPTER.validate_json(RULE_ADAPTER.dump_json(rule))

        assert decoded == rule
        assert type(decoded) is type(rule)

    def test_decimal_survives_as_decimal(self):
        rule = NumberShouldBeBetween(
            **column("price", data_type="DECIMAL"), min_value="0.10", max_value="19.99"
        )

        decoded = RULE_ADAPTER.validate_json(RULE_ADAPTER.dump_json(rule))

        assert decoded.min_value == Decimal("0.10")
        assert isinstance(decoded.max_value, Decimal)

    def test_dates_survive_with_their_granularity(self):
        day = DateShouldBeAfter(**column("sales_date", data_type="DATE"), date="2020-05-01")
        moment = DateShouldBeAfter(
            **column("date_added", data_type="DATETIME"), date="2020-05-01T10:00:00"
        )

        assert RULE_ADAPTER.validate_json(RULE_ADAPTER.dump_json(day)).date == date(2020, 5, 1)
        assert RULE_ADAPTER.validate_json(RULE_ADAPTER.dump_json(moment)).date == datetime(
            2020, 5, 1, 10
        )

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            RULE_ADAPTER.validate_python({**TABLE, "kind": "rows_should_vanish", "rows": 1})

    def test_rules_are_immutable(self):
        rule = RowsShouldEqual(**TABLE, rows=4)
        with pytest.raises(ValidationError):
            rule.rows = 5


class TestDomainTyping:
    def test_date_literal_for_date_rule(self):
        rule = DateShouldBeAfter(**column("sales_date", data_type="DATE"), date="2020-05-01")
        assert rule.date == date(2020, 5, 1)
        assert type(rule.date) is date

    def test_datetime_literal_narrowed_for_date_rule(self):
        rule = DateShouldBeAfter(
            **column("sales_date", data_type="DATE"), date="2020-05-01T23:59:59"
        )
        assert rule.date == date(2020, 5, 1)

    def test_date_only_literal_for_datetime_rule(self):
        rule = DateShouldBeAfter(**column("date_added", data_type="DATETIME"), date="2020-05-01")
        assert rule.date == datetime(2020, 5, 1)

    def test_bad_date_literal(self):
        with pytest.raises(FormatError):
            DateShouldBeAfter(**column("date_added", data_type="DATE"), date="yesterday")

    def test_float_literal_becomes_exact_decimal(self):
        rule = NumberShouldBeAtLeast(**column("price", data_type="DECIMAL"), min_value=2.27)
        assert rule.min_value == Decimal("2.27")

    def test_integer_rule_rejects_fraction(self):
        with pytest.raises(ConversionError):
            NumberShouldBeAtLeast(**column("id", data_type="INTEGER"), min_value=1.5)

    @pytest.mark.parametrize("data_type", ["TEXT", "DATE"])
    def test_number_rule_rejects_other_domains(self, data_type: str):
        with pytest.raises(ConfigurationError, match="number rule"):
            NumberShouldBeAtLeast(**column("id", data_type=data_type), min_value=1)

    def test_date_rule_rejects_numeric_domain(self):
        with pytest.raises(ConfigurationError, match="date rule"):
            DateShouldBeAfter(**column("id", data_type="INTEGER"), date="2020-01-01")

    def test_text_rule_rejects_numeric_domain(self):
        with pytest.raises(ConfigurationError, match="text rule"):
            TextShouldStartWith(**column(data_type="DECIMAL"), prefix="M")

    def test_totals_require_numeric_fields(self):
        side = {"datasource_name": "dw", "table_name": "customer", "dialect": "sqlite"}
        with pytest.raises(ConfigurationError, match="numeric"):
            ColumnTotalsShouldMatch(
                source_field=FieldRef(**side, field_name="name", data_type="TEXT"),
                destination_field=FieldRef(**side, field_name="id", data_type="INTEGER"),
            )

    def test_one_of_values_are_deduplicated(self):
        rule = TextShouldBeOneOf(**column(), values=["Mark", "Mary", "Mark"])
        assert rule.values == ("Mark", "Mary")

    def test_numeric_one_of_values_typed_and_deduplicated(self):
        rule = NumberShouldBeOneOf(
            **column("price", data_type="DECIMAL"), values=["2.27", 2.27, "4.5"]
        )
        assert rule.values == (Decimal("2.27"), Decimal("4.5"))

    def test_unknown_data_type_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            NumberShouldBeAtLeast(**column("id", data_type="BIGINT"), min_value=1)


class TestDerivedAttributes:
    def test_descriptions(self):
        assert RowsShouldEqual(**TABLE, rows=4).description == "customer rows should equal 4."
        assert (
            RowsShouldBeBetween(**TABLE, min_rows=1, max_rows=5).description
            == "customer rows should be between 1 and 5."
        )
        assert (
            DateShouldBeAfter(
                **column("date_added", data_type="DATE"), date="2020-01-01"
            ).description
            == "date_added should be after 2020-01-01."
        )
        assert (
            TextShouldStartWith(**column(), prefix="M").description
            == "name should start with 'M'."
        )

    def test_defaults(self):
        rule = TextShouldStartWith(**column(), prefix="M")

        assert rule.flex == 0.0
        assert rule.flex_percent == 0.0
        assert rule.mostly == 1.0
        assert rule.max_falsifying_examples == 3
        assert rule.data_type is DataType.TEXT
        assert rule.dialect is Dialect.SQLITE

    def test_example_cap_default_follows_settings(self, monkeypatch):
        monkeypatch.setenv("SQLASSERT_MAX_FALSIFYING_EXAMPLES", "7")
        get_settings.cache_clear()

        assert TextShouldStartWith(**column(), prefix="M").max_falsifying_examples == 7

    def test_datasource_names(self):
        rules = {type(rule): rule for rule in one_of_each()}

        assert rules[RowsShouldEqual].datasource_names == ("dw",)
        assert rules[RowsMatch].datasource_names == ("dw", "dw")

    def test_sql_is_repeatable(self):
        for rule in one_of_each():
            if isinstance(rule, (RowsMatch, ColumnTotalsShouldMatch)):
                assert rule.source_sql == rule.source_sql
                assert rule.destination_sql == rule.destination_sql
            else:
                assert rule.sql == rule.sql
