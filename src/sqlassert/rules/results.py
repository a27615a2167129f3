"""Pydantic models for rule evaluation results.

A result is either ``Passed`` (one shape per rule family) or ``Failed`` (one
shape per failure category). Every result echoes the rule's description,
tolerance parameters, the SQL that ran and how long it took; failures add the
observed values and a fixed ``error_message`` derived from their own fields.

    Passed:  ValuesOK, ValueComparisonOK, RowsOK, RowComparisonOK
    Failed:  row counts      RowCountDoesNotEqual, RowCountOutOfBounds,
                             TooManyRows, TooFewRows, RowCountsDoNotMatch
             invalid values  MissingPrefix, MissingSuffix, NotLike, NotOneOf,
                             ValuesOutOfBounds, TooLarge, TooSmall,
                             TooShortOrTooLong
             totals          TotalsDontMatch
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field, model_validator

from sqlassert.core.models.base import DataType
from sqlassert.rules.models import coerce_domain_fields
from sqlassert.rules.values import DomainValue, NumericValue


def _show(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class ResultModel(BaseModel):
    """Fields every result carries."""

    __test__ = False

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    test_description: str
    execution_time_ms: int = Field(ge=0)
    flex: float = 0.0
    flex_percent: float = 0.0
    mostly: float = 1.0

    passed: ClassVar[bool]


class Passed(ResultModel):
    passed: ClassVar[bool] = True


class Failed(ResultModel):
    passed: ClassVar[bool] = False

    @property
    def error_message(self) -> str:
        raise NotImplementedError


# =============================================================================
# Passed
# =============================================================================


class ValuesOK(Passed):
    kind: Literal["values_ok"] = "values_ok"
    datasource_name: str
    table_name: str
    field_name: str
    sql: str


class ValueComparisonOK(Passed):
    kind: Literal["value_comparison_ok"] = "value_comparison_ok"
    source_datasource_name: str
    source_table_name: str
    source_field_name: str
    source_sql: str
    destination_datasource_name: str
    destination_table_name: str
    destination_field_name: str
    destination_sql: str


class RowsOK(Passed):
    kind: Literal["rows_ok"] = "rows_ok"
    datasource_name: str
    table_name: str
    sql: str


class RowComparisonOK(Passed):
    kind: Literal["row_comparison_ok"] = "row_comparison_ok"
    source_datasource_name: str
    source_table_name: str
    source_sql: str
    destination_datasource_name: str
    destination_table_name: str
    destination_sql: str


# =============================================================================
# Failed: row counts
# =============================================================================


class RowCountFailure(Failed):
    datasource_name: str
    table_name: str
    sql: str
    actual_row_count: int


class RowCountDoesNotEqual(RowCountFailure):
    kind: Literal["row_count_does_not_equal"] = "row_count_does_not_equal"
    expected_row_count: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return f"Expected {self.expected_row_count} rows, but got {self.actual_row_count}"


class RowCountOutOfBounds(RowCountFailure):
    kind: Literal["row_count_out_of_bounds"] = "row_count_out_of_bounds"
    min_expected_rows: int
    max_expected_rows: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"Expected rows to be between {self.min_expected_rows} and "
            f"{self.max_expected_rows} rows, but got {self.actual_row_count} rows"
        )


class TooManyRows(RowCountFailure):
    kind: Literal["too_many_rows"] = "too_many_rows"
    max_expected_rows: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"Expected at most {self.max_expected_rows} rows, "
            f"but got {self.actual_row_count} rows"
        )


class TooFewRows(RowCountFailure):
    kind: Literal["too_few_rows"] = "too_few_rows"
    min_expected_rows: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"Expected at least {self.min_expected_rows} rows, "
            f"but got {self.actual_row_count} rows"
        )


class RowCountsDoNotMatch(Failed):
    kind: Literal["row_counts_do_not_match"] = "row_counts_do_not_match"
    source_datasource_name: str
    source_table_name: str
    source_sql: str
    destination_datasource_name: str
    destination_table_name: str
    destination_sql: str
    source_rows: int
    destination_rows: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return f"{self.source_table_name} rows do not match {self.destination_table_name} rows."


# =============================================================================
# Failed: invalid values
# =============================================================================


class InvalidValues(Failed):
    """Failure carrying the offending values of one column.

    ``falsifying_examples`` is deduplicated, sorted ascending and capped at the
    rule's ``max_falsifying_examples``. ``data_type`` re-types the examples and
    expected values when a result is decoded from JSON.
    """

    datasource_name: str
    table_name: str
    field_name: str
    sql: str
    data_type: DataType
    falsifying_examples: tuple[DomainValue, ...]

    domain_scalars: ClassVar[tuple[str, ...]] = ()
    domain_collections: ClassVar[tuple[str, ...]] = ("falsifying_examples",)

    @model_validator(mode="before")
    @classmethod
    def _coerce_domain_values(cls, data: Any) -> Any:
        return coerce_domain_fields(
            data, cls, cls.domain_scalars, cls.domain_collections, finite=False
        )


class MissingPrefix(InvalidValues):
    kind: Literal["missing_prefix"] = "missing_prefix"
    data_type: DataType = DataType.TEXT
    prefix: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return f"One or more values were missing the prefix '{self.prefix}'."


class MissingSuffix(InvalidValues):
    kind: Literal["missing_suffix"] = "missing_suffix"
    data_type: DataType = DataType.TEXT
    suffix: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return f"One or more values were missing the suffix '{self.suffix}'."


class NotLike(InvalidValues):
    kind: Literal["not_like"] = "not_like"
    data_type: DataType = DataType.TEXT
    fragment: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return f"One or more values did not contain the fragment, '{self.fragment}'."


class NotOneOf(InvalidValues):
    kind: Literal["not_one_of"] = "not_one_of"
    expected_values: tuple[DomainValue, ...]

    domain_collections: ClassVar[tuple[str, ...]] = ("falsifying_examples", "expected_values")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        expected = ", ".join(_show(v) for v in self.expected_values)
        return f"One or more values were not one of {expected}."


class ValuesOutOfBounds(InvalidValues):
    kind: Literal["values_out_of_bounds"] = "values_out_of_bounds"
    min_expected_value: DomainValue
    max_expected_value: DomainValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("min_expected_value", "max_expected_value")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"One or more values were not between {_show(self.min_expected_value)} "
            f"and {_show(self.max_expected_value)}."
        )


class TooLarge(InvalidValues):
    kind: Literal["too_large"] = "too_large"
    max_expected_value: DomainValue
    inclusive: bool = Field(default=True, description="Whether the bound itself is allowed")

    domain_scalars: ClassVar[tuple[str, ...]] = ("max_expected_value",)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        bound = _show(self.max_expected_value)
        if self.inclusive:
            return f"One or more values were larger than {bound}."
        return f"One or more values were not before {bound}."


class TooSmall(InvalidValues):
    kind: Literal["too_small"] = "too_small"
    min_expected_value: DomainValue
    inclusive: bool = Field(default=True, description="Whether the bound itself is allowed")

    domain_scalars: ClassVar[tuple[str, ...]] = ("min_expected_value",)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        bound = _show(self.min_expected_value)
        if self.inclusive:
            return f"One or more values were smaller than {bound}."
        return f"One or more values were not after {bound}."


class TooShortOrTooLong(InvalidValues):
    kind: Literal["too_short_or_too_long"] = "too_short_or_too_long"
    data_type: DataType = DataType.TEXT
    min_length: int
    max_length: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"One or more values had lengths less than {self.min_length} "
            f"or more than {self.max_length} characters."
        )


# =============================================================================
# Failed: totals
# =============================================================================


class TotalsDontMatch(Failed):
    kind: Literal["totals_dont_match"] = "totals_dont_match"
    source_datasource_name: str
    source_table_name: str
    source_field_name: str
    source_sql: str
    destination_datasource_name: str
    destination_table_name: str
    destination_field_name: str
    destination_sql: str
    data_type: DataType
    source_total: NumericValue
    destination_total: NumericValue

    @model_validator(mode="before")
    @classmethod
    def _coerce_totals(cls, data: Any) -> Any:
        return coerce_domain_fields(
            data, cls, ("source_total", "destination_total"), (), finite=False
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_message(self) -> str:
        return (
            f"{self.source_table_name}.{self.source_field_name} = {self.source_total}, "
            f"but {self.destination_table_name}.{self.destination_field_name} = "
            f"{self.destination_total}."
        )


# =============================================================================
# Unions
# =============================================================================

TestResult = Annotated[
    Union[
        ValuesOK,
        ValueComparisonOK,
        RowsOK,
        RowComparisonOK,
        RowCountDoesNotEqual,
        RowCountOutOfBounds,
        TooManyRows,
        TooFewRows,
        RowCountsDoNotMatch,
        MissingPrefix,
        MissingSuffix,
        NotLike,
        NotOneOf,
        ValuesOutOfBounds,
        TooLarge,
        TooSmall,
        TooShortOrTooLong,
        TotalsDontMatch,
    ],
    Field(discriminator="kind"),
]

TEST_RESULT_ADAPTER: TypeAdapter[TestResult] = TypeAdapter(TestResult)
