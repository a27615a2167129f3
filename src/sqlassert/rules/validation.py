"""Structural checks on rule parameters.

Validation never raises: every rule maps to ``IsValid`` or to ``IsInvalid``
with the ordered list of problems found. Results combine as a monoid, with
``IsValid`` as identity and error lists concatenated in order, so a whole
catalog folds into one result:

    outcome = validate_rules(suite.rules)
    if isinstance(outcome, IsInvalid):
        for message in outcome.errors:
            logger.warning("invalid_rule", message=message)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import reduce

from sqlassert.rules.models import (
    ColumnRule,
    ColumnTotalsShouldMatch,
    DateShouldBeBetween,
    FieldRef,
    NumberShouldBeBetween,
    NumberShouldBeOneOf,
    RowsMatch,
    RowsShouldBeAtLeast,
    RowsShouldBeAtMost,
    RowsShouldBeBetween,
    RowsShouldEqual,
    RuleModel,
    SingleTableRule,
    TableRef,
    TextLengthsShouldBeBetween,
    TextShouldBeLike,
    TextShouldBeOneOf,
    TextShouldEndWith,
    TextShouldStartWith,
)


@dataclass(frozen=True)
class IsValid:
    def __add__(self, other: RuleValidationResult) -> RuleValidationResult:
        return combine(self, other)


@dataclass(frozen=True)
class IsInvalid:
    errors: tuple[str, ...]

    def __add__(self, other: RuleValidationResult) -> RuleValidationResult:
        return combine(self, other)


RuleValidationResult = IsValid | IsInvalid

VALID = IsValid()


def combine(a: RuleValidationResult, b: RuleValidationResult) -> RuleValidationResult:
    """Monoid operation: IsValid is identity, error lists concatenate."""
    if isinstance(a, IsValid):
        return b
    if isinstance(b, IsValid):
        return a
    return IsInvalid(a.errors + b.errors)


def check(message: str, failed: bool) -> RuleValidationResult:
    return IsInvalid((message,)) if failed else VALID


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_table(datasource_name: str, table_name: str) -> RuleValidationResult:
    return check("Datasource names cannot be blank.", _blank(datasource_name)) + check(
        "Table names cannot be blank.", _blank(table_name)
    )


def validate_column(
    datasource_name: str, table_name: str, field_name: str, max_falsifying_examples: int = 0
) -> RuleValidationResult:
    return (
        validate_table(datasource_name, table_name)
        + check("Field names cannot be blank.", _blank(field_name))
        + check(
            "The max_falsifying_examples argument cannot be negative.",
            max_falsifying_examples < 0,
        )
    )


def _validate_tolerance(rule: RuleModel) -> RuleValidationResult:
    return (
        check("The flex argument cannot be negative.", rule.flex < 0)
        + check("The flex_percent argument cannot be negative.", rule.flex_percent < 0)
        + check("The mostly argument must be between 0 and 1.", not 0 <= rule.mostly <= 1)
    )


def _validate_ref(ref: TableRef) -> RuleValidationResult:
    if isinstance(ref, FieldRef):
        return validate_column(ref.datasource_name, ref.table_name, ref.field_name)
    return validate_table(ref.datasource_name, ref.table_name)


def _validate_parameters(rule: RuleModel) -> RuleValidationResult:
    match rule:
        case RowsShouldEqual():
            return check("The rows argument must be >= 0.", rule.rows < 0)
        case RowsShouldBeAtLeast():
            return check("The minimum rows argument must be >= 0.", rule.min_rows < 0)
        case RowsShouldBeAtMost():
            return check("The maximum rows argument must be >= 0.", rule.max_rows < 0)
        case RowsShouldBeBetween():
            return check("The minimum rows argument must be >= 0.", rule.min_rows < 0) + check(
                "The max_rows must be greater than the min_rows.", rule.max_rows < rule.min_rows
            )
        case DateShouldBeBetween():
            return check(
                "The min_date cannot be greater than the max_date.", rule.min_date > rule.max_date
            )
        case TextShouldBeLike():
            return check("The text fragment cannot be blank.", _blank(rule.fragment))
        case TextShouldStartWith():
            return check("The prefix cannot be blank.", _blank(rule.prefix))
        case TextShouldEndWith():
            return check("The suffix cannot be blank.", _blank(rule.suffix))
        case TextShouldBeOneOf() | NumberShouldBeOneOf():
            return check("The list of values cannot be empty.", not rule.values)
        case TextLengthsShouldBeBetween():
            return check("The min_length argument must be >= 0.", rule.min_length < 0) + check(
                "The max_length cannot be less than the min_length.",
                rule.max_length < rule.min_length,
            )
        case NumberShouldBeBetween():
            return check(
                "The max_value cannot be less than the min_value.",
                rule.max_value < rule.min_value,
            )
        case RowsMatch() | ColumnTotalsShouldMatch():
            return _validate_ref(rule.source) + _validate_ref(rule.destination)
        case _:
            return VALID


def validate_rule(rule: RuleModel) -> RuleValidationResult:
    """Check one rule's identifiers, parameters and tolerance arguments."""
    match rule:
        case ColumnRule():
            identifiers = validate_column(
                rule.datasource_name,
                rule.table_name,
                rule.field_name,
                rule.max_falsifying_examples,
            )
        case SingleTableRule():
            identifiers = validate_table(rule.datasource_name, rule.table_name)
        case _:
            identifiers = VALID
    return identifiers + _validate_parameters(rule) + _validate_tolerance(rule)


def validate_rules(rules: Iterable[RuleModel]) -> RuleValidationResult:
    """Fold ``validate_rule`` over a sequence of rules."""
    return reduce(combine, (validate_rule(rule) for rule in rules), VALID)
