"""YAML loader for test suites.

Builds a populated ``TestSuite`` from a compact YAML document. Rules are not
evaluated here, only constructed; every rule inherits the identifiers,
subquery and dialect of the datasource, table and field it is declared under.

Example:
    max_falsifying_examples: 5
    datasources:
      - name: dw
        dialect: postgres
        tables:
          - name: customer
            rows:
              - should_be_between: [1, 1000]
            fields:
              - name: first_name
                type: text
                rules:
                  - should_start_with: M
                  - lengths_should_be_between: {min_length: 2, max_length: 40, mostly: 0.95}
              - name: date_added
                type: date
                rules:
                  - should_be_on_or_after: "2020-01-01"
          - name: recent_sale
            subquery: SELECT * FROM sale WHERE sale_date >= '2021-01-01'
            fields:
              - name: amount
                type: decimal
                rules:
                  - should_be_at_least: 0
    rules:
      - rows_match: {source: dw.customer, destination: dw.customer_copy}
      - column_totals_should_match: {source: dw.sale.amount, destination: dw.sale_copy.amount}

Rule arguments may be a scalar (single-parameter operations), a list (positional
parameters, or the allowed values of ``should_be_one_of``), or a mapping of
parameter names which may also carry ``flex``, ``flex_percent`` and ``mostly``.

Files ending in ``.json`` are read as the JSON encoding of a TestSuite.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sqlassert.core.config import get_settings
from sqlassert.core.logging import get_logger
from sqlassert.core.models.base import DataType, Dialect
from sqlassert.rules.catalog import (
    Datasource,
    DateField,
    NumberField,
    Table,
    TestSuite,
    TextField,
)
from sqlassert.rules.errors import RuleError
from sqlassert.rules.models import (
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
    RuleModel,
    TableRef,
    TextLengthsShouldBeBetween,
    TextShouldBeLike,
    TextShouldBeOneOf,
    TextShouldEndWith,
    TextShouldStartWith,
)

logger = get_logger(__name__)

TOLERANCE_KEYS = ("flex", "flex_percent", "mostly")

# operation -> (rule class, positional parameter names)
Operations = Mapping[str, tuple[type[RuleModel], tuple[str, ...]]]

ROW_OPERATIONS: Operations = {
    "should_equal": (RowsShouldEqual, ("rows",)),
    "should_be_at_least": (RowsShouldBeAtLeast, ("min_rows",)),
    "should_be_at_most": (RowsShouldBeAtMost, ("max_rows",)),
    "should_be_between": (RowsShouldBeBetween, ("min_rows", "max_rows")),
}

DATE_OPERATIONS: Operations = {
    "should_be_after": (DateShouldBeAfter, ("date",)),
    "should_be_on_or_after": (DateShouldBeOnOrAfter, ("date",)),
    "should_be_before": (DateShouldBeBefore, ("date",)),
    "should_be_on_or_before": (DateShouldBeOnOrBefore, ("date",)),
    "should_be_between": (DateShouldBeBetween, ("min_date", "max_date")),
}

TEXT_OPERATIONS: Operations = {
    "should_be_like": (TextShouldBeLike, ("fragment",)),
    "should_start_with": (TextShouldStartWith, ("prefix",)),
    "should_end_with": (TextShouldEndWith, ("suffix",)),
    "should_be_one_of": (TextShouldBeOneOf, ("values",)),
    "lengths_should_be_between": (TextLengthsShouldBeBetween, ("min_length", "max_length")),
}

NUMBER_OPERATIONS: Operations = {
    "should_be_at_least": (NumberShouldBeAtLeast, ("min_value",)),
    "should_be_at_most": (NumberShouldBeAtMost, ("max_value",)),
    "should_be_between": (NumberShouldBeBetween, ("min_value", "max_value")),
    "should_be_one_of": (NumberShouldBeOneOf, ("values",)),
}

# Parameters that take the whole list instead of spreading it positionally
COLLECTION_PARAMETERS = frozenset({"values"})


class CatalogLoadError(Exception):
    """Error loading a test suite definition."""

    pass


def load_test_suite(path: Path | str) -> TestSuite:
    """Load a test suite from a YAML (or JSON) file.

    Args:
        path: Path to the suite definition

    Returns:
        TestSuite with every declared rule constructed

    Raises:
        CatalogLoadError: If the file is missing, malformed, or defines an invalid rule
    """
    path = Path(path)
    if not path.exists():
        raise CatalogLoadError(f"Test suite file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            suite = TestSuite.model_validate_json(text)
        else:
            raw = yaml.safe_load(text)
            if not raw:
                logger.warning("empty_test_suite_file", path=str(path))
                return TestSuite()
            suite = parse_test_suite(raw)
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise CatalogLoadError(f"Validation error in {path}: {e}") from e
    except RuleError as e:
        raise CatalogLoadError(f"Invalid rule in {path}: {e}") from e

    logger.info("test_suite_loaded", path=str(path), rules=len(suite.rules))
    return suite


def parse_test_suite(raw: Mapping[str, Any]) -> TestSuite:
    """Build a TestSuite from an already-parsed YAML document.

    Raises:
        CatalogLoadError: With the path of the offending entry
    """
    if not isinstance(raw, Mapping):
        raise CatalogLoadError("A test suite must be a mapping.")

    default_examples = raw.get("max_falsifying_examples", get_settings().max_falsifying_examples)
    datasources = tuple(
        _parse_datasource(ds, f"datasources[{i}]", default_examples)
        for i, ds in enumerate(_as_list(raw.get("datasources"), "datasources"))
    )
    multi_table_rules = tuple(
        _parse_multi_table_rule(entry, f"rules[{i}]", datasources)
        for i, entry in enumerate(_as_list(raw.get("rules"), "rules"))
    )
    return TestSuite(datasources=datasources, multi_table_rules=multi_table_rules)


# =============================================================================
# Catalog entries
# =============================================================================


def _as_list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise CatalogLoadError(f"{where}: expected a list, got {type(value).__name__}.")
    return value


def _require(entry: Mapping[str, Any], key: str, where: str) -> Any:
    if not isinstance(entry, Mapping):
        raise CatalogLoadError(f"{where}: expected a mapping, got {type(entry).__name__}.")
    if key not in entry:
        raise CatalogLoadError(f"{where}: missing required key '{key}'.")
    return entry[key]


def _parse_dialect(tag: Any, where: str) -> Dialect:
    try:
        return Dialect.parse(tag)
    except ValueError as e:
        raise CatalogLoadError(f"{where}: {e}") from e


def _parse_datasource(entry: Any, where: str, default_examples: int) -> Datasource:
    name = _require(entry, "name", where)
    dialect = _parse_dialect(_require(entry, "dialect", where), where)
    max_examples = entry.get("max_falsifying_examples", default_examples)
    tables = tuple(
        _parse_table(t, f"{where}.tables[{i}]", name, dialect, max_examples)
        for i, t in enumerate(_as_list(entry.get("tables"), f"{where}.tables"))
    )
    return Datasource(name=name, dialect=dialect, tables=tables)


def _parse_table(
    entry: Any, where: str, datasource_name: str, dialect: Dialect, max_examples: int
) -> Table:
    table_name = _require(entry, "name", where)
    subquery = entry.get("subquery")
    location = {
        "datasource_name": datasource_name,
        "table_name": table_name,
        "subquery": subquery,
        "dialect": dialect,
    }
    rows = tuple(
        _build_rule(rule, f"{where}.rows[{i}]", ROW_OPERATIONS, location)
        for i, rule in enumerate(_as_list(entry.get("rows"), f"{where}.rows"))
    )
    fields = tuple(
        _parse_field(f, f"{where}.fields[{i}]", location, max_examples)
        for i, f in enumerate(_as_list(entry.get("fields"), f"{where}.fields"))
    )
    return Table(**location, fields=fields, rules=rows)


def _parse_field(
    entry: Any, where: str, location: dict[str, Any], max_examples: int
) -> DateField | NumberField | TextField:
    field_name = _require(entry, "name", where)
    raw_type = str(entry.get("type", "text")).strip().upper()
    try:
        data_type = DataType(raw_type)
    except ValueError:
        options = ", ".join(t.value.lower() for t in DataType)
        raise CatalogLoadError(
            f"{where}: unknown field type '{raw_type.lower()}'. Expected one of {options}."
        ) from None

    if data_type.is_temporal:
        field_cls, operations = DateField, DATE_OPERATIONS
    elif data_type.is_numeric:
        field_cls, operations = NumberField, NUMBER_OPERATIONS
    else:
        field_cls, operations = TextField, TEXT_OPERATIONS

    column = {
        **location,
        "field_name": field_name,
        "data_type": data_type,
        "max_falsifying_examples": entry.get("max_falsifying_examples", max_examples),
    }
    rules = tuple(
        _build_rule(rule, f"{where}.rules[{i}]", operations, column)
        for i, rule in enumerate(_as_list(entry.get("rules"), f"{where}.rules"))
    )
    return field_cls(**location, field_name=field_name, data_type=data_type, rules=rules)


# =============================================================================
# Rule entries
# =============================================================================


def _split_entry(entry: Any, where: str) -> tuple[str, Any]:
    if not isinstance(entry, Mapping) or len(entry) != 1:
        raise CatalogLoadError(
            f"{where}: a rule must be a single-key mapping of operation to arguments."
        )
    ((operation, args),) = entry.items()
    return str(operation), args


def _reject_unknown_keys(
    args: Mapping[str, Any], allowed: tuple[str, ...], operation: str, where: str
) -> None:
    unknown = [str(k) for k in args if k not in allowed]
    if unknown:
        names = ", ".join(f"'{k}'" for k in unknown)
        raise CatalogLoadError(
            f"{where}: unknown argument(s) {names} for '{operation}'. "
            f"Expected some of {', '.join(allowed)}."
        )


def _arguments(
    args: Any, parameters: tuple[str, ...], operation: str, where: str
) -> dict[str, Any]:
    if isinstance(args, Mapping):
        _reject_unknown_keys(args, parameters + TOLERANCE_KEYS, operation, where)
        return dict(args)
    if len(parameters) == 1:
        return {parameters[0]: args}
    if isinstance(args, list) and len(args) == len(parameters):
        return dict(zip(parameters, args, strict=True))
    raise CatalogLoadError(
        f"{where}: expected {len(parameters)} arguments ({', '.join(parameters)}), got {args!r}."
    )


def _build_rule(
    entry: Any, where: str, operations: Operations, context: dict[str, Any]
) -> Any:
    operation, args = _split_entry(entry, where)
    if operation not in operations:
        options = ", ".join(sorted(operations))
        raise CatalogLoadError(
            f"{where}: unknown operation '{operation}'. Expected one of {options}."
        )
    rule_cls, parameters = operations[operation]
    kwargs = _arguments(args, parameters, operation, where)
    if COLLECTION_PARAMETERS.intersection(parameters) and not isinstance(
        kwargs.get("values"), list
    ):
        raise CatalogLoadError(f"{where}: '{operation}' expects a list of values.")

    try:
        return rule_cls(**context, **kwargs)
    except (ValidationError, RuleError) as e:
        raise CatalogLoadError(f"{where}: {e}") from e


def _resolve_table(
    ds_name: str, table_name: str, where: str, datasources: tuple[Datasource, ...]
) -> Table:
    for ds in datasources:
        if ds.name == ds_name:
            try:
                return ds.table(table_name)
            except KeyError as e:
                raise CatalogLoadError(f"{where}: {e.args[0]}") from e
    raise CatalogLoadError(f"{where}: no datasource named '{ds_name}' is declared.")


def _table_ref(reference: Any, where: str, datasources: tuple[Datasource, ...]) -> TableRef:
    # The datasource is the first segment, the table name is everything after it
    ds_name, _, table_name = str(reference).partition(".")
    if not ds_name or not table_name:
        raise CatalogLoadError(f"{where}: '{reference}' is not a datasource.table reference.")
    table = _resolve_table(ds_name, table_name, where, datasources)
    return TableRef(
        datasource_name=table.datasource_name,
        table_name=table.table_name,
        subquery=table.subquery,
        dialect=table.dialect,
    )


def _field_ref(reference: Any, where: str, datasources: tuple[Datasource, ...]) -> FieldRef:
    # datasource first, field last, table name in between
    parts = str(reference).split(".")
    if len(parts) < 3 or not all(parts):
        raise CatalogLoadError(
            f"{where}: '{reference}' is not a datasource.table.field reference."
        )
    table = _resolve_table(parts[0], ".".join(parts[1:-1]), where, datasources)
    try:
        field = table.field(parts[-1])
    except KeyError as e:
        raise CatalogLoadError(f"{where}: {e.args[0]}") from e
    return FieldRef(
        datasource_name=table.datasource_name,
        table_name=table.table_name,
        subquery=table.subquery,
        dialect=table.dialect,
        field_name=field.field_name,
        data_type=field.data_type,
    )


def _parse_multi_table_rule(
    entry: Any, where: str, datasources: tuple[Datasource, ...]
) -> RowsMatch | ColumnTotalsShouldMatch:
    operation, args = _split_entry(entry, where)
    if not isinstance(args, Mapping):
        raise CatalogLoadError(
            f"{where}: '{operation}' expects a mapping with source and destination."
        )
    _reject_unknown_keys(args, ("source", "destination") + TOLERANCE_KEYS, operation, where)
    source = _require(args, "source", where)
    destination = _require(args, "destination", where)
    tolerance = {k: args[k] for k in TOLERANCE_KEYS if k in args}

    try:
        if operation == "rows_match":
            return RowsMatch(
                source_table=_table_ref(source, f"{where}.source", datasources),
                destination_table=_table_ref(destination, f"{where}.destination", datasources),
                **tolerance,
            )
        if operation == "column_totals_should_match":
            return ColumnTotalsShouldMatch(
                source_field=_field_ref(source, f"{where}.source", datasources),
                destination_field=_field_ref(destination, f"{where}.destination", datasources),
                **tolerance,
            )
    except (ValidationError, RuleError) as e:
        raise CatalogLoadError(f"{where}: {e}") from e

    raise CatalogLoadError(
        f"{where}: unknown operation '{operation}'. "
        "Expected one of column_totals_should_match, rows_match."
    )
