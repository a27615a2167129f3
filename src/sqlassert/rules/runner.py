"""Suite running: evaluate many rules and collect results in declared order.

Two error policies:

    run_tests            the first evaluation error aborts the run and propagates
    run_tests_isolated   every rule gets a Result; errors become failed Results

Both accept a TestSuite or any iterable of rules. With ``max_workers > 1``
rules are evaluated on a thread pool; results still come back in the order the
rules were given.

Usage:
    backends = {"dw": SqlAlchemyBackend(engine)}
    results = run_tests(suite, backends, max_workers=4)
    summary = summarize(results)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass

from sqlassert.core.config import get_settings
from sqlassert.core.connections import DatasourceBackend
from sqlassert.core.logging import end_run_metrics, get_logger, log_context, start_run_metrics
from sqlassert.core.models.base import Result
from sqlassert.rules.catalog import TestSuite
from sqlassert.rules.evaluator import RuleEvaluator
from sqlassert.rules.models import Rule
from sqlassert.rules.results import TestResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class SuiteSummary:
    """Counts over a list of results."""

    total: int
    passed: int
    failed: int
    execution_time_ms: int

    @property
    def all_passed(self) -> bool:
        return self.failed == 0


def summarize(results: Iterable[TestResult]) -> SuiteSummary:
    results = list(results)
    passed = sum(1 for r in results if r.passed)
    return SuiteSummary(
        total=len(results),
        passed=passed,
        failed=len(results) - passed,
        execution_time_ms=sum(r.execution_time_ms for r in results),
    )


def _rules_of(suite_or_rules: TestSuite | Iterable[Rule]) -> tuple[Rule, ...]:
    if isinstance(suite_or_rules, TestSuite):
        return suite_or_rules.rules
    return tuple(suite_or_rules)


def _map_in_order[T](
    fn: Callable[[Rule], T], rules: Sequence[Rule], max_workers: int
) -> list[T]:
    """Apply ``fn`` to every rule, keeping input order in the output."""
    if max_workers <= 1 or len(rules) <= 1:
        return [fn(rule) for rule in rules]

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sqlassert") as pool:
        # Each task runs in a copy of the caller's context so run metrics and
        # log context reach the worker threads.
        futures: list[Future[T]] = [
            pool.submit(copy_context().run, fn, rule) for rule in rules
        ]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise


def _run[T](
    fn_factory: Callable[[RuleEvaluator], Callable[[Rule], T]],
    suite_or_rules: TestSuite | Iterable[Rule],
    backends: Mapping[str, DatasourceBackend],
    max_workers: int | None,
) -> list[T]:
    rules = _rules_of(suite_or_rules)
    workers = max_workers if max_workers is not None else get_settings().max_workers
    evaluator = RuleEvaluator(backends)
    run_id = uuid.uuid4().hex[:12]

    start = time.perf_counter()
    start_run_metrics(run_id)
    try:
        with log_context(run_id=run_id):
            logger.info("suite_started", rules=len(rules), max_workers=workers)
            results = _map_in_order(fn_factory(evaluator), rules, workers)
    finally:
        metrics = end_run_metrics()

    # to_dict carries the run_id
    summary = metrics.to_dict() if metrics else {"run_id": run_id}
    logger.info(
        "suite_completed",
        elapsed_ms=int((time.perf_counter() - start) * 1000),
        **summary,
    )
    return results


def run_tests(
    suite_or_rules: TestSuite | Iterable[Rule],
    backends: Mapping[str, DatasourceBackend],
    max_workers: int | None = None,
) -> list[TestResult]:
    """Evaluate every rule; the first error aborts the run.

    Args:
        suite_or_rules: A TestSuite (its ``rules`` are used) or rules in order
        backends: Datasource name -> backend
        max_workers: Thread pool size; defaults to ``Settings.max_workers``

    Returns:
        One result per rule, in the order the rules were given

    Raises:
        DatasourceNotFound: If a rule names a datasource missing from ``backends``
        RuleError: If a returned cell cannot be decoded
        Exception: Whatever a backend raises for a failing query
    """
    return _run(lambda evaluator: evaluator.evaluate, suite_or_rules, backends, max_workers)


def _isolated(evaluator: RuleEvaluator) -> Callable[[Rule], Result[TestResult]]:
    def evaluate(rule: Rule) -> Result[TestResult]:
        try:
            return Result.ok(evaluator.evaluate(rule))
        except Exception as e:
            return Result.fail(f"{type(e).__name__}: {e}")

    return evaluate


def run_tests_isolated(
    suite_or_rules: TestSuite | Iterable[Rule],
    backends: Mapping[str, DatasourceBackend],
    max_workers: int | None = None,
) -> list[Result[TestResult]]:
    """Evaluate every rule, turning evaluation errors into failed Results.

    A rule whose evaluation raises yields ``Result.fail`` carrying the error
    type and message; every other rule still runs.
    """
    return _run(_isolated, suite_or_rules, backends, max_workers)
