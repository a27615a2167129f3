"""Pydantic models for rules.

Every rule variant is a frozen model with a ``kind`` discriminator, so a whole
catalog encodes to plain JSON/YAML and decodes back to the same variants.
Derived attributes (``description``, ``predicate``, ``sql``) are properties
computed from the frozen fields by the functions in ``sqlassert.rules.sql``.

Families:

    Row rules        COUNT(*) against a bound
    Date rules       DATE / DATETIME column against a bound
    Text rules       TEXT column against a pattern, set or length range
    Number rules     DECIMAL / FLOAT / INTEGER column against a bound or set
    Multi-table      source and destination compared with each other
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from sqlassert.core.config import get_settings
from sqlassert.core.models.base import (
    NUMERIC_TYPES,
    TEMPORAL_TYPES,
    DataType,
    DialectTag,
)
from sqlassert.rules import sql as compiler
from sqlassert.rules.errors import ConfigurationError
from sqlassert.rules.values import NumericValue, TemporalValue, coerce_value


def _default_max_falsifying_examples() -> int:
    return get_settings().max_falsifying_examples


def _declared_data_type(data: dict[str, Any], model: type[BaseModel]) -> DataType | None:
    raw = data.get("data_type", model.model_fields["data_type"].default)
    if isinstance(raw, DataType):
        return raw
    try:
        return DataType(raw)
    except ValueError:
        # Let field validation report the bad value
        return None


def coerce_domain_fields(
    data: Any,
    model: type[BaseModel],
    scalars: tuple[str, ...],
    collections: tuple[str, ...],
    finite: bool = True,
) -> Any:
    """Re-type the domain-valued entries of raw model input by its ``data_type``."""
    if not isinstance(data, dict):
        return data
    data_type = _declared_data_type(data, model)
    if data_type is None:
        return data

    coerced = dict(data)
    for name in scalars:
        if coerced.get(name) is not None:
            coerced[name] = coerce_value(coerced[name], data_type, finite)
    for name in collections:
        values = coerced.get(name)
        if values is not None and not isinstance(values, (str, bytes)):
            coerced[name] = tuple(coerce_value(v, data_type, finite) for v in values)
    return coerced


def _dedupe[T](values: tuple[T, ...]) -> tuple[T, ...]:
    return tuple(dict.fromkeys(values))


# =============================================================================
# Base classes
# =============================================================================


class RuleModel(BaseModel):
    """Fields shared by every rule.

    The tolerance parameters are carried into every result but do not affect
    whether a rule passes.
    """

    model_config = ConfigDict(frozen=True)

    flex: float = Field(default=0.0, description="Allowed absolute deviation")
    flex_percent: float = Field(default=0.0, description="Allowed relative deviation")
    mostly: float = Field(default=1.0, description="Fraction of rows that must comply")

    @property
    def description(self) -> str:
        raise NotImplementedError

    @property
    def datasource_names(self) -> tuple[str, ...]:
        raise NotImplementedError


class SingleTableRule(RuleModel):
    datasource_name: str
    table_name: str
    subquery: str | None = Field(
        default=None, description="Query used in place of the table, aliased as t"
    )
    dialect: DialectTag

    @property
    def datasource_names(self) -> tuple[str, ...]:
        return (self.datasource_name,)

    @property
    def sql(self) -> str:
        raise NotImplementedError


class RowRule(SingleTableRule):
    """Assertion on the number of rows in a table or subquery."""

    @property
    def sql(self) -> str:
        return compiler.row_count_query(self.table_name, self.subquery)


class ColumnRule(SingleTableRule):
    """Assertion on the values of one column.

    Subclasses list which fields hold domain values; raw input for those is
    converted according to ``data_type`` before field validation, so the same
    model accepts ``"2020-01-31"`` for a DATE rule and ``"2.27"`` for a
    DECIMAL rule.
    """

    field_name: str
    data_type: DataType
    max_falsifying_examples: int = Field(default_factory=_default_max_falsifying_examples)

    family: ClassVar[str] = "column"
    domain_types: ClassVar[tuple[DataType, ...]] = tuple(DataType)
    domain_scalars: ClassVar[tuple[str, ...]] = ()
    domain_collections: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _coerce_domain_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data_type = _declared_data_type(data, cls)
            if data_type is not None and data_type not in cls.domain_types:
                options = ", ".join(t.value for t in cls.domain_types)
                raise ConfigurationError(
                    f"The data type for a {cls.family} rule should be one of {options}, "
                    f"but {data_type.value} was provided."
                )
        return coerce_domain_fields(data, cls, cls.domain_scalars, cls.domain_collections)

    @property
    def wrapped_field(self) -> str:
        return compiler.wrap_field(self.field_name, self.dialect)

    @property
    def predicate(self) -> str:
        raise NotImplementedError

    @property
    def sql(self) -> str:
        return compiler.column_query(
            self.field_name,
            self.table_name,
            self.subquery,
            self.predicate,
            self.max_falsifying_examples,
            self.dialect,
        )


class DateRule(ColumnRule):
    family: ClassVar[str] = "date"
    domain_types: ClassVar[tuple[DataType, ...]] = TEMPORAL_TYPES


class TextRule(ColumnRule):
    data_type: DataType = DataType.TEXT

    family: ClassVar[str] = "text"
    domain_types: ClassVar[tuple[DataType, ...]] = (DataType.TEXT,)


class NumberRule(ColumnRule):
    family: ClassVar[str] = "number"
    domain_types: ClassVar[tuple[DataType, ...]] = NUMERIC_TYPES


# =============================================================================
# Row rules
# =============================================================================


class RowsShouldEqual(RowRule):
    kind: Literal["rows_should_equal"] = "rows_should_equal"
    rows: int

    @property
    def description(self) -> str:
        return f"{self.table_name} rows should equal {self.rows}."


class RowsShouldBeAtLeast(RowRule):
    kind: Literal["rows_should_be_at_least"] = "rows_should_be_at_least"
    min_rows: int

    @property
    def description(self) -> str:
        return f"{self.table_name} rows should be at least {self.min_rows}."


class RowsShouldBeAtMost(RowRule):
    kind: Literal["rows_should_be_at_most"] = "rows_should_be_at_most"
    max_rows: int

    @property
    def description(self) -> str:
        return f"{self.table_name} rows should be at most {self.max_rows}."


class RowsShouldBeBetween(RowRule):
    kind: Literal["rows_should_be_between"] = "rows_should_be_between"
    min_rows: int
    max_rows: int

    @property
    def description(self) -> str:
        return f"{self.table_name} rows should be between {self.min_rows} and {self.max_rows}."


# =============================================================================
# Date rules
# =============================================================================


class DateShouldBeAfter(DateRule):
    kind: Literal["date_should_be_after"] = "date_should_be_after"
    date: TemporalValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("date",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be after {self.date.isoformat()}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, "<=", self.date, self.data_type)


class DateShouldBeOnOrAfter(DateRule):
    kind: Literal["date_should_be_on_or_after"] = "date_should_be_on_or_after"
    date: TemporalValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("date",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be on or after {self.date.isoformat()}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, "<", self.date, self.data_type)


class DateShouldBeBefore(DateRule):
    kind: Literal["date_should_be_before"] = "date_should_be_before"
    date: TemporalValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("date",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be before {self.date.isoformat()}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, ">=", self.date, self.data_type)


class DateShouldBeOnOrBefore(DateRule):
    kind: Literal["date_should_be_on_or_before"] = "date_should_be_on_or_before"
    date: TemporalValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("date",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be on or before {self.date.isoformat()}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, ">", self.date, self.data_type)


class DateShouldBeBetween(DateRule):
    kind: Literal["date_should_be_between"] = "date_should_be_between"
    min_date: TemporalValue
    max_date: TemporalValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("min_date", "max_date")

    @property
    def description(self) -> str:
        return (
            f"{self.field_name} should be between {self.min_date.isoformat()} "
            f"and {self.max_date.isoformat()}."
        )

    @property
    def predicate(self) -> str:
        return compiler.not_between(
            self.wrapped_field, self.min_date, self.max_date, self.data_type
        )


# =============================================================================
# Text rules
# =============================================================================


class TextShouldBeLike(TextRule):
    kind: Literal["text_should_be_like"] = "text_should_be_like"
    fragment: str

    @property
    def description(self) -> str:
        return f"{self.field_name} should contain '{self.fragment}'."

    @property
    def predicate(self) -> str:
        return compiler.not_like(self.wrapped_field, f"%{self.fragment}%")


class TextShouldStartWith(TextRule):
    kind: Literal["text_should_start_with"] = "text_should_start_with"
    prefix: str

    @property
    def description(self) -> str:
        return f"{self.field_name} should start with '{self.prefix}'."

    @property
    def predicate(self) -> str:
        return compiler.not_like(self.wrapped_field, f"{self.prefix}%")


class TextShouldEndWith(TextRule):
    kind: Literal["text_should_end_with"] = "text_should_end_with"
    suffix: str

    @property
    def description(self) -> str:
        return f"{self.field_name} should end with '{self.suffix}'."

    @property
    def predicate(self) -> str:
        return compiler.not_like(self.wrapped_field, f"%{self.suffix}")


class TextShouldBeOneOf(TextRule):
    kind: Literal["text_should_be_one_of"] = "text_should_be_one_of"
    values: tuple[str, ...] = Field(description="Allowed values, duplicates dropped")

    domain_collections: ClassVar[tuple[str, ...]] = ("values",)

    @field_validator("values")
    @classmethod
    def _unique_values(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(values)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be one of {', '.join(self.values)}."

    @property
    def predicate(self) -> str:
        return compiler.not_in(self.wrapped_field, self.values, self.data_type)


class TextLengthsShouldBeBetween(TextRule):
    kind: Literal["text_lengths_should_be_between"] = "text_lengths_should_be_between"
    min_length: int
    max_length: int

    @property
    def description(self) -> str:
        return (
            f"{self.field_name} lengths should be between {self.min_length} "
            f"and {self.max_length}."
        )

    @property
    def predicate(self) -> str:
        return compiler.length_not_between(
            self.wrapped_field, self.min_length, self.max_length, self.dialect
        )


# =============================================================================
# Number rules
# =============================================================================


class NumberShouldBeAtLeast(NumberRule):
    kind: Literal["number_should_be_at_least"] = "number_should_be_at_least"
    min_value: NumericValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("min_value",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be at least {self.min_value}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, "<", self.min_value, self.data_type)


class NumberShouldBeAtMost(NumberRule):
    kind: Literal["number_should_be_at_most"] = "number_should_be_at_most"
    max_value: NumericValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("max_value",)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be at most {self.max_value}."

    @property
    def predicate(self) -> str:
        return compiler.compare(self.wrapped_field, ">", self.max_value, self.data_type)


class NumberShouldBeBetween(NumberRule):
    kind: Literal["number_should_be_between"] = "number_should_be_between"
    min_value: NumericValue
    max_value: NumericValue

    domain_scalars: ClassVar[tuple[str, ...]] = ("min_value", "max_value")

    @property
    def description(self) -> str:
        return f"{self.field_name} should be between {self.min_value} and {self.max_value}."

    @property
    def predicate(self) -> str:
        return compiler.not_between(
            self.wrapped_field, self.min_value, self.max_value, self.data_type
        )


class NumberShouldBeOneOf(NumberRule):
    kind: Literal["number_should_be_one_of"] = "number_should_be_one_of"
    values: tuple[NumericValue, ...]

    domain_collections: ClassVar[tuple[str, ...]] = ("values",)

    @field_validator("values")
    @classmethod
    def _unique_values(cls, values: tuple[NumericValue, ...]) -> tuple[NumericValue, ...]:
        return _dedupe(values)

    @property
    def description(self) -> str:
        return f"{self.field_name} should be one of {', '.join(str(v) for v in self.values)}."

    @property
    def predicate(self) -> str:
        return compiler.not_in(self.wrapped_field, self.values, self.data_type)


# =============================================================================
# Multi-table rules
# =============================================================================


class TableRef(BaseModel):
    """One side of a multi-table rule."""

    model_config = ConfigDict(frozen=True)

    datasource_name: str
    table_name: str
    subquery: str | None = None
    dialect: DialectTag


class FieldRef(TableRef):
    field_name: str
    data_type: DataType


class MultiTableRule(RuleModel):
    """Assertion comparing a source against a destination."""

    @property
    def source(self) -> TableRef:
        raise NotImplementedError

    @property
    def destination(self) -> TableRef:
        raise NotImplementedError

    @property
    def datasource_names(self) -> tuple[str, ...]:
        return (self.source.datasource_name, self.destination.datasource_name)

    @property
    def source_sql(self) -> str:
        raise NotImplementedError

    @property
    def destination_sql(self) -> str:
        raise NotImplementedError


class RowsMatch(MultiTableRule):
    kind: Literal["rows_match"] = "rows_match"
    source_table: TableRef
    destination_table: TableRef

    @property
    def source(self) -> TableRef:
        return self.source_table

    @property
    def destination(self) -> TableRef:
        return self.destination_table

    @property
    def description(self) -> str:
        return (
            f"{self.source_table.table_name} rows should match "
            f"{self.destination_table.table_name} rows."
        )

    @property
    def source_sql(self) -> str:
        return compiler.row_count_query(self.source_table.table_name, self.source_table.subquery)

    @property
    def destination_sql(self) -> str:
        return compiler.row_count_query(
            self.destination_table.table_name, self.destination_table.subquery
        )


class ColumnTotalsShouldMatch(MultiTableRule):
    kind: Literal["column_totals_should_match"] = "column_totals_should_match"
    source_field: FieldRef
    destination_field: FieldRef

    @model_validator(mode="after")
    def _numeric_sides(self) -> ColumnTotalsShouldMatch:
        for ref in (self.source_field, self.destination_field):
            if not ref.data_type.is_numeric:
                raise ConfigurationError(
                    f"Column totals can only be compared for numeric fields, but "
                    f"{ref.table_name}.{ref.field_name} is {ref.data_type.value}."
                )
        return self

    @property
    def source(self) -> FieldRef:
        return self.source_field

    @property
    def destination(self) -> FieldRef:
        return self.destination_field

    @property
    def description(self) -> str:
        src, dst = self.source_field, self.destination_field
        return (
            f"{src.table_name}.{src.field_name} total should match "
            f"{dst.table_name}.{dst.field_name} total."
        )

    @property
    def source_sql(self) -> str:
        ref = self.source_field
        return compiler.total_query(ref.field_name, ref.table_name, ref.subquery, ref.dialect)

    @property
    def destination_sql(self) -> str:
        ref = self.destination_field
        return compiler.total_query(ref.field_name, ref.table_name, ref.subquery, ref.dialect)


# =============================================================================
# Unions
# =============================================================================

RowRuleVariant = Annotated[
    Union[RowsShouldEqual, RowsShouldBeAtLeast, RowsShouldBeAtMost, RowsShouldBeBetween],
    Field(discriminator="kind"),
]

DateRuleVariant = Annotated[
    Union[
        DateShouldBeAfter,
        DateShouldBeOnOrAfter,
        DateShouldBeBefore,
        DateShouldBeOnOrBefore,
        DateShouldBeBetween,
    ],
    Field(discriminator="kind"),
]

TextRuleVariant = Annotated[
    Union[
        TextShouldBeLike,
        TextShouldStartWith,
        TextShouldEndWith,
        TextShouldBeOneOf,
        TextLengthsShouldBeBetween,
    ],
    Field(discriminator="kind"),
]

NumberRuleVariant = Annotated[
    Union[NumberShouldBeAtLeast, NumberShouldBeAtMost, NumberShouldBeBetween, NumberShouldBeOneOf],
    Field(discriminator="kind"),
]

MultiTableRuleVariant = Annotated[
    Union[RowsMatch, ColumnTotalsShouldMatch],
    Field(discriminator="kind"),
]

Rule = Annotated[
    Union[
        RowsShouldEqual,
        RowsShouldBeAtLeast,
        RowsShouldBeAtMost,
        RowsShouldBeBetween,
        DateShouldBeAfter,
        DateShouldBeOnOrAfter,
        DateShouldBeBefore,
        DateShouldBeOnOrBefore,
        DateShouldBeBetween,
        TextShouldBeLike,
        TextShouldStartWith,
        TextShouldEndWith,
        TextShouldBeOneOf,
        TextLengthsShouldBeBetween,
        NumberShouldBeAtLeast,
        NumberShouldBeAtMost,
        NumberShouldBeBetween,
        NumberShouldBeOneOf,
        RowsMatch,
        ColumnTotalsShouldMatch,
    ],
    Field(discriminator="kind"),
]

RULE_ADAPTER: TypeAdapter[Rule] = TypeAdapter(Rule)

__all__ = [
    "ColumnRule",
    "ColumnTotalsShouldMatch",
    "DateRule",
    "DateRuleVariant",
    "DateShouldBeAfter",
    "DateShouldBeBefore",
    "DateShouldBeBetween",
    "DateShouldBeOnOrAfter",
    "DateShouldBeOnOrBefore",
    "FieldRef",
    "MultiTableRule",
    "MultiTableRuleVariant",
    "NumberRule",
    "NumberRuleVariant",
    "NumberShouldBeAtLeast",
    "NumberShouldBeAtMost",
    "NumberShouldBeBetween",
    "NumberShouldBeOneOf",
    "RULE_ADAPTER",
    "Rule",
    "RowRule",
    "RowRuleVariant",
    "RowsMatch",
    "RowsShouldBeAtLeast",
    "RowsShouldBeAtMost",
    "RowsShouldBeBetween",
    "RowsShouldEqual",
    "RuleModel",
    "SingleTableRule",
    "TableRef",
    "TextLengthsShouldBeBetween",
    "TextRule",
    "TextRuleVariant",
    "TextShouldBeLike",
    "TextShouldBeOneOf",
    "TextShouldEndWith",
    "TextShouldStartWith",
]
