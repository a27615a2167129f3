"""Rule evaluation: run a rule's SQL and classify the outcome.

Evaluation is split in two so that classification can be exercised without a
database:

    query(rule)               I/O: resolve backends, run SQL, decode cells
    classify(rule, result)    pure: DbResult -> Passed / Failed

Execution:
---------
- Every datasource the rule names is resolved before any SQL runs; a missing
  one raises DatasourceNotFound.
- Single-table rules run one query. Multi-table rules run two, source first.
- Each query runs in its own read-only transaction inside the backend.
- Elapsed time covers connection acquisition, execution and decoding.

Classification:
--------------
ROW RULES:
  - the single COUNT(*) is compared against the declared bound

COLUMN RULES:
  - the query already selects only offending values, so a rule passes when
    nothing comes back
  - set-membership rules additionally check every returned value against
    the allowed set
  - falsifying examples are deduplicated, sorted and capped

MULTI-TABLE RULES:
  - RowsMatch compares the two counts, ColumnTotalsShouldMatch the two sums

flex, flex_percent and mostly are copied into the result and never consulted.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlassert.core.connections import DatasourceBackend, Row
from sqlassert.core.logging import get_logger, increment_query, record_rule_outcome
from sqlassert.core.models.base import DataType, Dialect
from sqlassert.rules.errors import DatasourceNotFound, EmptyResult
from sqlassert.rules.models import (
    ColumnRule,
    ColumnTotalsShouldMatch,
    DateShouldBeAfter,
    DateShouldBeBefore,
    DateShouldBeBetween,
    DateShouldBeOnOrAfter,
    DateShouldBeOnOrBefore,
    NumberShouldBeAtLeast,
    NumberShouldBeAtMost,
    NumberShouldBeBetween,
    NumberShouldBeOneOf,
    RowRule,
    RowsMatch,
    RowsShouldBeAtLeast,
    RowsShouldBeAtMost,
    RowsShouldBeBetween,
    RowsShouldEqual,
    Rule,
    RuleModel,
    TextLengthsShouldBeBetween,
    TextShouldBeLike,
    TextShouldBeOneOf,
    TextShouldEndWith,
    TextShouldStartWith,
)
from sqlassert.rules.results import (
    Failed,
    MissingPrefix,
    MissingSuffix,
    NotLike,
    NotOneOf,
    RowComparisonOK,
    RowCountDoesNotEqual,
    RowCountOutOfBounds,
    RowCountsDoNotMatch,
    RowsOK,
    TestResult,
    TooFewRows,
    TooLarge,
    TooManyRows,
    TooShortOrTooLong,
    TooSmall,
    TotalsDontMatch,
    ValueComparisonOK,
    ValuesOK,
    ValuesOutOfBounds,
)
from sqlassert.rules.values import DomainValue, decode_cell

logger = get_logger(__name__)


# =============================================================================
# Raw query output
# =============================================================================


@dataclass(frozen=True)
class SingleResult:
    """Decoded rows of a single-table rule query."""

    values: tuple[Any, ...]
    execution_time_ms: int


@dataclass(frozen=True)
class MultipleResult:
    """Decoded rows of both sides of a multi-table rule."""

    source_values: tuple[Any, ...]
    destination_values: tuple[Any, ...]
    execution_time_ms: int


DbResult = SingleResult | MultipleResult


def _cell_decoder(data_type: DataType, dialect: Dialect) -> Callable[[Row], DomainValue]:
    def decode(row: Row) -> DomainValue:
        if not row:
            raise EmptyResult()
        return decode_cell(row[0], data_type, dialect)

    return decode


def falsifying_examples(values: Sequence[Any], limit: int) -> tuple[Any, ...]:
    """Deduplicate, sort ascending and cap offending values."""
    return tuple(sorted(set(values))[: max(limit, 0)])


# =============================================================================
# Classification
# =============================================================================


def _echo(rule: RuleModel, execution_time_ms: int) -> dict[str, Any]:
    return {
        "test_description": rule.description,
        "execution_time_ms": execution_time_ms,
        "flex": rule.flex,
        "flex_percent": rule.flex_percent,
        "mostly": rule.mostly,
    }


def _classify_rows(rule: RowRule, result: SingleResult) -> TestResult:
    if not result.values:
        raise EmptyResult(f"The row count query for {rule.table_name} returned no rows.")
    actual = result.values[0]
    common = {
        **_echo(rule, result.execution_time_ms),
        "datasource_name": rule.datasource_name,
        "table_name": rule.table_name,
        "sql": rule.sql,
    }

    match rule:
        case RowsShouldEqual():
            if actual == rule.rows:
                return RowsOK(**common)
            return RowCountDoesNotEqual(
                **common, expected_row_count=rule.rows, actual_row_count=actual
            )
        case RowsShouldBeAtLeast():
            if actual >= rule.min_rows:
                return RowsOK(**common)
            return TooFewRows(**common, min_expected_rows=rule.min_rows, actual_row_count=actual)
        case RowsShouldBeAtMost():
            if actual <= rule.max_rows:
                return RowsOK(**common)
            return TooManyRows(**common, max_expected_rows=rule.max_rows, actual_row_count=actual)
        case RowsShouldBeBetween():
            if rule.min_rows <= actual <= rule.max_rows:
                return RowsOK(**common)
            return RowCountOutOfBounds(
                **common,
                min_expected_rows=rule.min_rows,
                max_expected_rows=rule.max_rows,
                actual_row_count=actual,
            )
        case _:
            raise TypeError(f"Unsupported row rule: {type(rule).__name__}")


def _offending(rule: ColumnRule, values: tuple[Any, ...]) -> tuple[Any, ...]:
    if isinstance(rule, (TextShouldBeOneOf, NumberShouldBeOneOf)):
        allowed = set(rule.values)
        return tuple(v for v in values if v not in allowed)
    return values


def _classify_column(rule: ColumnRule, result: SingleResult) -> TestResult:
    offending = _offending(rule, result.values)
    location = {
        "datasource_name": rule.datasource_name,
        "table_name": rule.table_name,
        "field_name": rule.field_name,
        "sql": rule.sql,
    }
    echo = _echo(rule, result.execution_time_ms)
    if not offending:
        return ValuesOK(**echo, **location)

    failed = {
        **echo,
        **location,
        "data_type": rule.data_type,
        "falsifying_examples": falsifying_examples(offending, rule.max_falsifying_examples),
    }
    match rule:
        case DateShouldBeAfter() | DateShouldBeOnOrAfter():
            return TooSmall(
                **failed,
                min_expected_value=rule.date,
                inclusive=isinstance(rule, DateShouldBeOnOrAfter),
            )
        case DateShouldBeBefore() | DateShouldBeOnOrBefore():
            return TooLarge(
                **failed,
                max_expected_value=rule.date,
                inclusive=isinstance(rule, DateShouldBeOnOrBefore),
            )
        case DateShouldBeBetween():
            return ValuesOutOfBounds(
                **failed, min_expected_value=rule.min_date, max_expected_value=rule.max_date
            )
        case TextShouldBeLike():
            return NotLike(**failed, fragment=rule.fragment)
        case TextShouldStartWith():
            return MissingPrefix(**failed, prefix=rule.prefix)
        case TextShouldEndWith():
            return MissingSuffix(**failed, suffix=rule.suffix)
        case TextShouldBeOneOf() | NumberShouldBeOneOf():
            return NotOneOf(**failed, expected_values=rule.values)
        case TextLengthsShouldBeBetween():
            return TooShortOrTooLong(
                **failed, min_length=rule.min_length, max_length=rule.max_length
            )
        case NumberShouldBeAtLeast():
            return TooSmall(**failed, min_expected_value=rule.min_value)
        case NumberShouldBeAtMost():
            return TooLarge(**failed, max_expected_value=rule.max_value)
        case NumberShouldBeBetween():
            return ValuesOutOfBounds(
                **failed, min_expected_value=rule.min_value, max_expected_value=rule.max_value
            )
        case _:
            raise TypeError(f"Unsupported column rule: {type(rule).__name__}")


def _single_value(values: tuple[Any, ...], side: str) -> Any:
    if not values:
        raise EmptyResult(f"The {side} query returned no rows.")
    return values[0]


def _classify_multi(
    rule: RowsMatch | ColumnTotalsShouldMatch, result: MultipleResult
) -> TestResult:
    src, dst = rule.source, rule.destination
    common = {
        **_echo(rule, result.execution_time_ms),
        "source_datasource_name": src.datasource_name,
        "source_table_name": src.table_name,
        "source_sql": rule.source_sql,
        "destination_datasource_name": dst.datasource_name,
        "destination_table_name": dst.table_name,
        "destination_sql": rule.destination_sql,
    }

    match rule:
        case RowsMatch():
            if result.source_values == result.destination_values:
                return RowComparisonOK(**common)
            return RowCountsDoNotMatch(
                **common,
                source_rows=_single_value(result.source_values, "source"),
                destination_rows=_single_value(result.destination_values, "destination"),
            )
        case ColumnTotalsShouldMatch():
            source_total = _single_value(result.source_values, "source")
            destination_total = _single_value(result.destination_values, "destination")
            fields = {
                "source_field_name": rule.source_field.field_name,
                "destination_field_name": rule.destination_field.field_name,
            }
            if source_total == destination_total:
                return ValueComparisonOK(**common, **fields)
            return TotalsDontMatch(
                **common,
                **fields,
                data_type=rule.source_field.data_type,
                source_total=source_total,
                destination_total=destination_total,
            )
        case _:
            raise TypeError(f"Unsupported multi-table rule: {type(rule).__name__}")


def classify(rule: Rule, db_result: DbResult) -> TestResult:
    """Turn decoded query output into a Passed or Failed result.

    Raises:
        EmptyResult: If a count or total query returned no row
        TypeError: If the rule and result shapes do not belong together
    """
    match rule, db_result:
        case RowRule(), SingleResult():
            return _classify_rows(rule, db_result)
        case ColumnRule(), SingleResult():
            return _classify_column(rule, db_result)
        case RowsMatch() | ColumnTotalsShouldMatch(), MultipleResult():
            return _classify_multi(rule, db_result)
        case _:
            raise TypeError(
                f"Cannot classify {type(rule).__name__} from {type(db_result).__name__}"
            )


# =============================================================================
# Evaluator
# =============================================================================


class RuleEvaluator:
    """Evaluates rules against a map of datasource name to backend.

    The evaluator holds no state besides the map, so one instance can serve
    any number of threads as long as the backends are thread-safe.
    """

    def __init__(self, backends: Mapping[str, DatasourceBackend]):
        """Initialize evaluator.

        Args:
            backends: Datasource name -> backend used to run that datasource's SQL
        """
        self.backends = backends

    def backend(self, datasource_name: str) -> DatasourceBackend:
        try:
            return self.backends[datasource_name]
        except KeyError:
            raise DatasourceNotFound(datasource_name) from None

    def _run[T](self, datasource_name: str, sql: str, transform: Callable[[Row], T]) -> list[T]:
        backend = self.backend(datasource_name)
        start = time.perf_counter()
        rows = backend.exec_and_map(sql, transform)
        increment_query(datasource_name, int((time.perf_counter() - start) * 1000))
        logger.debug("rule_query_executed", datasource=datasource_name, rows=len(rows))
        return rows

    def query(self, rule: Rule) -> DbResult:
        """Run a rule's SQL and decode the returned cells."""
        for name in rule.datasource_names:
            self.backend(name)

        start = time.perf_counter()
        match rule:
            case RowRule():
                values = self._run(
                    rule.datasource_name,
                    rule.sql,
                    _cell_decoder(DataType.INTEGER, rule.dialect),
                )
                return SingleResult(tuple(values), _elapsed_ms(start))
            case ColumnRule():
                values = self._run(
                    rule.datasource_name,
                    rule.sql,
                    _cell_decoder(rule.data_type, rule.dialect),
                )
                return SingleResult(tuple(values), _elapsed_ms(start))
            case RowsMatch():
                src, dst = rule.source_table, rule.destination_table
                source = self._run(
                    src.datasource_name,
                    rule.source_sql,
                    _cell_decoder(DataType.INTEGER, src.dialect),
                )
                destination = self._run(
                    dst.datasource_name,
                    rule.destination_sql,
                    _cell_decoder(DataType.INTEGER, dst.dialect),
                )
                return MultipleResult(tuple(source), tuple(destination), _elapsed_ms(start))
            case ColumnTotalsShouldMatch():
                src_field, dst_field = rule.source_field, rule.destination_field
                source = self._run(
                    src_field.datasource_name,
                    rule.source_sql,
                    _cell_decoder(src_field.data_type, src_field.dialect),
                )
                destination = self._run(
                    dst_field.datasource_name,
                    rule.destination_sql,
                    _cell_decoder(dst_field.data_type, dst_field.dialect),
                )
                return MultipleResult(tuple(source), tuple(destination), _elapsed_ms(start))
            case _:
                raise TypeError(f"Unsupported rule type: {type(rule).__name__}")

    def evaluate(self, rule: Rule) -> TestResult:
        """Evaluate one rule.

        Raises:
            DatasourceNotFound: If the rule names a datasource missing from the map
            RuleError: If a returned cell cannot be decoded
            Exception: Whatever the backend raises for a failing query
        """
        try:
            result = classify(rule, self.query(rule))
        except Exception as e:
            record_rule_outcome(None)
            logger.error(
                "rule_evaluation_failed",
                rule=rule.description,
                kind=rule.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        record_rule_outcome(result.passed)
        logger.debug(
            "rule_evaluated",
            rule=rule.description,
            kind=rule.kind,
            passed=result.passed,
            execution_time_ms=result.execution_time_ms,
        )
        if isinstance(result, Failed):
            logger.info("rule_failed", rule=rule.description, error=result.error_message)
        return result


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
