"""Rule algebra for data-quality assertions.

This module provides:
- Rule models (row, date, text, number and multi-table rules)
- Result models (Passed / Failed variants)
- Catalog models (datasources, tables, fields, test suites)
- Rule validation (IsValid / IsInvalid)
- Rule evaluator and suite runner
- YAML loader for test suites
"""

from sqlassert.rules.catalog import (
    CatalogField,
    Datasource,
    DateField,
    NumberField,
    Table,
    TestSuite,
    TextField,
)
from sqlassert.rules.errors import (
    ConfigurationError,
    ConversionError,
    DatasourceNotFound,
    EmptyResult,
    FormatError,
    RuleError,
)
from sqlassert.rules.evaluator import (
    DbResult,
    MultipleResult,
    RuleEvaluator,
    SingleResult,
    classify,
)
from sqlassert.rules.loader import CatalogLoadError, load_test_suite, parse_test_suite
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
from sqlassert.rules.results import (
    TEST_RESULT_ADAPTER,
    Failed,
    Passed,
    TestResult,
)
from sqlassert.rules.runner import SuiteSummary, run_tests, run_tests_isolated, summarize
from sqlassert.rules.validation import (
    IsInvalid,
    IsValid,
    RuleValidationResult,
    combine,
    validate_rule,
    validate_rules,
)

__all__ = [
    # Rule models
    "Rule",
    "RULE_ADAPTER",
    "RowsShouldEqual",
    "RowsShouldBeAtLeast",
    "RowsShouldBeAtMost",
    "RowsShouldBeBetween",
    "DateShouldBeAfter",
    "DateShouldBeOnOrAfter",
    "DateShouldBeBefore",
    "DateShouldBeOnOrBefore",
    "DateShouldBeBetween",
    "TextShouldBeLike",
    "TextShouldStartWith",
    "TextShouldEndWith",
    "TextShouldBeOneOf",
    "TextLengthsShouldBeBetween",
    "NumberShouldBeAtLeast",
    "NumberShouldBeAtMost",
    "NumberShouldBeBetween",
    "NumberShouldBeOneOf",
    "RowsMatch",
    "ColumnTotalsShouldMatch",
    "TableRef",
    "FieldRef",
    # Result models
    "TestResult",
    "TEST_RESULT_ADAPTER",
    "Passed",
    "Failed",
    # Catalog
    "CatalogField",
    "DateField",
    "NumberField",
    "TextField",
    "Table",
    "Datasource",
    "TestSuite",
    # Errors
    "RuleError",
    "ConversionError",
    "ConfigurationError",
    "FormatError",
    "EmptyResult",
    "DatasourceNotFound",
    # Validation
    "IsValid",
    "IsInvalid",
    "RuleValidationResult",
    "combine",
    "validate_rule",
    "validate_rules",
    # Evaluation
    "DbResult",
    "SingleResult",
    "MultipleResult",
    "RuleEvaluator",
    "classify",
    "run_tests",
    "run_tests_isolated",
    "summarize",
    "SuiteSummary",
    # Loader
    "CatalogLoadError",
    "load_test_suite",
    "parse_test_suite",
]
