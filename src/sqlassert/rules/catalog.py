"""Catalog of datasources, tables and fields that own rules.

The catalog is plain data: rules already carry their own datasource, table and
field identifiers, and those are resolved against a backend map only when a
rule is evaluated.
Each entry rejects members whose identifiers differ from its own, so a rule
always runs against the table and field it is listed under.

    TestSuite
    ├── datasources[]            Datasource(name, dialect)
    │   └── tables[]             Table(table_name, subquery)
    │       ├── rules[]          row rules
    │       └── fields[]         DateField | NumberField | TextField
    │           └── rules[]      column rules of the field's family
    └── multi_table_rules[]      RowsMatch | ColumnTotalsShouldMatch
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sqlassert.core.models.base import NUMERIC_TYPES, TEMPORAL_TYPES, DataType, DialectTag
from sqlassert.rules.errors import ConfigurationError
from sqlassert.rules.models import (
    DateRuleVariant,
    MultiTableRuleVariant,
    NumberRuleVariant,
    Rule,
    RowRuleVariant,
    TextRuleVariant,
)
from sqlassert.rules.validation import RuleValidationResult, validate_rules


class CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True)


TABLE_IDENTITY = ("datasource_name", "table_name", "subquery", "dialect")
FIELD_IDENTITY = (*TABLE_IDENTITY, "field_name", "data_type")


def _check_members(owner: str, expected: dict[str, Any], members: Iterable[Any]) -> None:
    """Every member must carry the identifiers of the entry that declares it."""
    for member in members:
        for name, value in expected.items():
            actual = getattr(member, name)
            if actual != value:
                raise ConfigurationError(
                    f"{owner} cannot hold a {type(member).__name__} with "
                    f"{name}={actual!r}; expected {value!r}."
                )


# =============================================================================
# Fields
# =============================================================================


class FieldModel(CatalogModel):
    datasource_name: str
    table_name: str
    field_name: str
    subquery: str | None = None
    dialect: DialectTag

    domain_types: ClassVar[tuple[DataType, ...]] = tuple(DataType)

    @field_validator("data_type", check_fields=False)
    @classmethod
    def _data_type_in_family(cls, data_type: DataType) -> DataType:
        if data_type not in cls.domain_types:
            options = ", ".join(t.value for t in cls.domain_types)
            raise ConfigurationError(
                f"A {cls.__name__} must be declared as one of {options}, "
                f"but {data_type.value} was provided."
            )
        return data_type

    @model_validator(mode="after")
    def _rules_belong_to_field(self) -> FieldModel:
        expected = {name: getattr(self, name) for name in FIELD_IDENTITY}
        _check_members(f"The field '{self.field_name}'", expected, getattr(self, "rules", ()))
        return self


class DateField(FieldModel):
    kind: Literal["date"] = "date"
    data_type: DataType = DataType.DATE
    rules: tuple[DateRuleVariant, ...] = ()

    domain_types: ClassVar[tuple[DataType, ...]] = TEMPORAL_TYPES


class NumberField(FieldModel):
    kind: Literal["number"] = "number"
    data_type: DataType
    rules: tuple[NumberRuleVariant, ...] = ()

    domain_types: ClassVar[tuple[DataType, ...]] = NUMERIC_TYPES


class TextField(FieldModel):
    kind: Literal["text"] = "text"
    data_type: DataType = DataType.TEXT
    rules: tuple[TextRuleVariant, ...] = ()

    domain_types: ClassVar[tuple[DataType, ...]] = (DataType.TEXT,)


CatalogField = Annotated[Union[DateField, NumberField, TextField], Field(discriminator="kind")]


# =============================================================================
# Tables, datasources, suites
# =============================================================================


class Table(CatalogModel):
    datasource_name: str
    table_name: str
    subquery: str | None = None
    dialect: DialectTag
    fields: tuple[CatalogField, ...] = ()
    rules: tuple[RowRuleVariant, ...] = ()

    @model_validator(mode="after")
    def _members_belong_to_table(self) -> Table:
        expected = {name: getattr(self, name) for name in TABLE_IDENTITY}
        _check_members(f"The table '{self.table_name}'", expected, self.rules)
        _check_members(f"The table '{self.table_name}'", expected, self.fields)
        return self

    def field(self, field_name: str) -> DateField | NumberField | TextField:
        for f in self.fields:
            if f.field_name == field_name:
                return f
        raise KeyError(f"The table '{self.table_name}' has no field named '{field_name}'.")

    @property
    def all_rules(self) -> tuple[Rule, ...]:
        """Row rules first, then each field's column rules in declared order."""
        column_rules = tuple(rule for f in self.fields for rule in f.rules)
        return tuple(self.rules) + column_rules


class Datasource(CatalogModel):
    name: str
    dialect: DialectTag
    tables: tuple[Table, ...] = ()

    @model_validator(mode="after")
    def _tables_belong_to_datasource(self) -> Datasource:
        for table in self.tables:
            if table.datasource_name != self.name or table.dialect != self.dialect:
                raise ConfigurationError(
                    f"The datasource '{self.name}' ({self.dialect.value}) cannot hold "
                    f"the table '{table.table_name}' declared for "
                    f"'{table.datasource_name}' ({table.dialect.value})."
                )
        return self

    def table(self, table_name: str) -> Table:
        for t in self.tables:
            if t.table_name == table_name:
                return t
        raise KeyError(f"The datasource '{self.name}' has no table named '{table_name}'.")

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(rule for t in self.tables for rule in t.all_rules)


class TestSuite(CatalogModel):
    """A complete catalog: every datasource plus the cross-datasource rules."""

    __test__ = False

    datasources: tuple[Datasource, ...] = ()
    multi_table_rules: tuple[MultiTableRuleVariant, ...] = ()

    def datasource(self, name: str) -> Datasource:
        for ds in self.datasources:
            if ds.name == name:
                return ds
        raise KeyError(f"The test suite has no datasource named '{name}'.")

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Every rule in declared order.

        Datasource by datasource, table by table, row rules before column
        rules; the multi-table rules follow, each exactly once.
        """
        single = tuple(rule for ds in self.datasources for rule in ds.rules)
        return single + tuple(self.multi_table_rules)

    def validate_rules(self) -> RuleValidationResult:
        return validate_rules(self.rules)
