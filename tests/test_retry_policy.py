from __future__ import annotations

import unittest

from multisql_orm import RetryPolicy
from multisql_orm.core.retry import RetryState, execute_with_retry


class Busy(Exception):
    pass


def _is_busy(exc: BaseException) -> bool:
    return isinstance(exc, Busy)


class FlakyOperation:
    def __init__(self, failures: int, error: type[Exception] = Busy):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("resource busy")
        return "ok"


class RetryPolicyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps: list[float] = []
        self.retries: list[int] = []

    def _on_retry(self, attempt: int, exc: BaseException) -> None:
        self.retries.append(attempt)

    def test_two_failures_then_success(self) -> None:
        policy = RetryPolicy(_is_busy, max_retries=3, base_delay=0.5, sleep=self.sleeps.append)
        operation = FlakyOperation(failures=2)

        self.assertEqual(policy.execute(operation, on_retry=self._on_retry), "ok")
        self.assertEqual(operation.calls, 3)
        self.assertEqual(self.retries, [1, 2])
        self.assertEqual(self.sleeps, [0.5, 1.0])

    def test_exhausted_retries_propagate_last_error(self) -> None:
        policy = RetryPolicy(_is_busy, max_retries=2, base_delay=0.1, sleep=self.sleeps.append)
        operation = FlakyOperation(failures=10)

        with self.assertRaises(Busy):
            policy.execute(operation, on_retry=self._on_retry)
        self.assertEqual(operation.calls, 3)
        self.assertEqual(self.retries, [1, 2])
        self.assertEqual(len(self.sleeps), 2)
        self.assertAlmostEqual(self.sleeps[1], 0.2)

    def test_other_errors_are_not_retried(self) -> None:
        policy = RetryPolicy(_is_busy, sleep=self.sleeps.append)
        operation = FlakyOperation(failures=1, error=ValueError)

        with self.assertRaises(ValueError):
            policy.execute(operation, on_retry=self._on_retry)
        self.assertEqual(operation.calls, 1)
        self.assertEqual(self.retries, [])
        self.assertEqual(self.sleeps, [])

    def test_per_call_overrides(self) -> None:
        policy = RetryPolicy(_is_busy, max_retries=0, sleep=self.sleeps.append)
        operation = FlakyOperation(failures=1)

        self.assertEqual(policy.execute(operation, max_retries=1, base_delay=2.0), "ok")
        self.assertEqual(self.sleeps, [2.0])

    def test_functional_shortcut(self) -> None:
        operation = FlakyOperation(failures=1)
        result = execute_with_retry(
            operation, _is_busy, base_delay=0.25, on_retry=self._on_retry, sleep=self.sleeps.append
        )
        self.assertEqual(result, "ok")
        self.assertEqual(self.retries, [1])
        self.assertEqual(self.sleeps, [0.25])


class RetryStateTests(unittest.TestCase):
    def test_delay_grows_linearly(self) -> None:
        state = RetryState(max_retries=3, base_delay=0.5)
        delays = []
        while not state.exhausted:
            delays.append(state.next_delay())
            state.attempt += 1
        self.assertEqual(delays, [0.5, 1.0, 1.5])


if __name__ == "__main__":
    unittest.main()
