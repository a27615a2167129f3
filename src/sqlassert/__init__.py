"""sqlassert.

Declarative data-quality assertions compiled to SQL.
"""

__version__ = "0.1.0"

from sqlassert.core.models.base import DataType, Dialect, Result
from sqlassert.rules import TestSuite, load_test_suite, run_tests, run_tests_isolated

__all__ = [
    "DataType",
    "Dialect",
    "Result",
    "TestSuite",
    "load_test_suite",
    "run_tests",
    "run_tests_isolated",
    "__version__",
]
