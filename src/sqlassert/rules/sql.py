"""SQL generation for rules.

Rules compile to small templated statements rather than going through a query
builder: the shapes are closed and the text is echoed verbatim in failure
reports, so it has to stay readable.

Column rules select the offending values only, using a falsifying predicate
that is true exactly for violating rows:

    SELECT "name" FROM customer WHERE "name" NOT LIKE 'M%' LIMIT 3
    SELECT TOP (3) [name] FROM customer WHERE [name] NOT LIKE 'M%'
    SELECT "name" FROM customer WHERE "name" NOT LIKE 'M%' FETCH FIRST 3 ROWS ONLY

Row rules count rows:

    SELECT COUNT(*) AS row_ct FROM customer

Cross-source total rules sum one column per side:

    SELECT SUM("amount") AS total FROM (SELECT * FROM sale WHERE region = 'EU') AS t

Literal formatting:
- DATE / DATETIME literals are quoted ISO-8601 text ('2020-01-31', '2020-01-31T08:15:00')
- numbers are written unquoted in positional notation
- text is single-quoted with embedded quotes doubled; LIKE wildcards
  (% and _) inside fragments are passed through as wildcards
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from sqlassert.core.models.base import DataType, Dialect, RowLimitPlacement
from sqlassert.rules.values import DomainValue

# =============================================================================
# Identifiers and literals
# =============================================================================


def wrap_field(field_name: str, dialect: Dialect) -> str:
    """Quote a column name for the dialect ([x] for MSSQL, "x" elsewhere)."""
    return dialect.quote_identifier(field_name)


def quote_text(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def wrap_value(value: DomainValue, data_type: DataType) -> str:
    """Render a typed literal as SQL text."""
    if data_type.is_temporal:
        assert isinstance(value, (date, datetime))
        return f"'{value.isoformat()}'"
    if data_type is DataType.DECIMAL:
        assert isinstance(value, Decimal)
        return format(value, "f")
    if data_type is DataType.FLOAT:
        return repr(float(value))  # type: ignore[arg-type]
    if data_type is DataType.INTEGER:
        return str(int(value))  # type: ignore[arg-type]
    return quote_text(str(value))


def wrap_values(values: Iterable[DomainValue], data_type: DataType) -> str:
    return ", ".join(wrap_value(v, data_type) for v in values)


def table_or_subquery(table_name: str, subquery: str | None) -> str:
    """The FROM target: the raw table name, or the subquery aliased as t."""
    if subquery is None:
        return table_name
    return f"({subquery}) AS t"


def length_function(dialect: Dialect) -> str:
    return "LEN" if dialect is Dialect.MSSQL else "LENGTH"


# =============================================================================
# Falsifying predicates
# =============================================================================


def compare(field: str, operator: str, value: DomainValue, data_type: DataType) -> str:
    return f"{field} {operator} {wrap_value(value, data_type)}"


def not_between(
    field: str, min_value: DomainValue, max_value: DomainValue, data_type: DataType
) -> str:
    return (
        f"{field} NOT BETWEEN {wrap_value(min_value, data_type)} "
        f"AND {wrap_value(max_value, data_type)}"
    )


def not_in(field: str, values: Iterable[DomainValue], data_type: DataType) -> str:
    return f"{field} NOT IN ({wrap_values(values, data_type)})"


def not_like(field: str, pattern: str) -> str:
    return f"{field} NOT LIKE {quote_text(pattern)}"


def length_not_between(field: str, min_length: int, max_length: int, dialect: Dialect) -> str:
    return f"{length_function(dialect)}({field}) NOT BETWEEN {min_length} AND {max_length}"


# =============================================================================
# Full statements
# =============================================================================


def column_query(
    field_name: str,
    table_name: str,
    subquery: str | None,
    predicate: str,
    limit: int,
    dialect: Dialect,
) -> str:
    """Select the offending values of one column, capped at ``limit`` rows.

    The cap is never below one row: a rule that reports zero examples still
    has to see whether any row violates it.
    """
    field = wrap_field(field_name, dialect)
    source = table_or_subquery(table_name, subquery)
    n = max(limit, 1)
    match dialect.row_limit:
        case RowLimitPlacement.TOP:
            return f"SELECT TOP ({n}) {field} FROM {source} WHERE {predicate}"
        case RowLimitPlacement.FETCH_FIRST:
            return f"SELECT {field} FROM {source} WHERE {predicate} FETCH FIRST {n} ROWS ONLY"
        case RowLimitPlacement.LIMIT:
            return f"SELECT {field} FROM {source} WHERE {predicate} LIMIT {n}"


def row_count_query(table_name: str, subquery: str | None) -> str:
    return f"SELECT COUNT(*) AS row_ct FROM {table_or_subquery(table_name, subquery)}"


def total_query(field_name: str, table_name: str, subquery: str | None, dialect: Dialect) -> str:
    field = wrap_field(field_name, dialect)
    return f"SELECT SUM({field}) AS total FROM {table_or_subquery(table_name, subquery)}"
