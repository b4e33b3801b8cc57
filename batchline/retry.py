from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import TypeVar


T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and for which errors, a write is attempted again.

    Attempt ``n`` that fails waits ``backoff_seconds * n`` before attempt
    ``n + 1``; at most ``max_retries`` extra attempts are made.
    """

    max_retries: int = 0
    backoff_seconds: float = 0.0
    should_retry: Callable[[Exception], bool] | None = None

    def allows(self, attempt: int, exc: Exception) -> bool:
        if attempt > self.max_retries:
            return False
        return self.should_retry is None or self.should_retry(exc)

    def call(
        self,
        fn: Callable[[], T],
        *,
        on_attempt_failure: Callable[[int, Exception], None] | None = None,
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except Exception as exc:
                if on_attempt_failure:
                    on_attempt_failure(attempt, exc)
                if not self.allows(attempt, exc):
                    raise RetryExhaustedError(attempt, exc) from exc
                time.sleep(self.backoff_seconds * attempt)
