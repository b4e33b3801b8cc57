import logging
from typing import Any

from batchline.interfaces import Continue, Outcome, RecordProcessor
from batchline.retry import RetryExhaustedError, RetryPolicy
from batchline.schemas import IndexDocument, Tweet


logger = logging.getLogger(__name__)


class TweetTransformer:
    """Turns a tweet into the document stored by the search index."""

    def process(self, tweet: Tweet) -> Outcome:
        return Continue(
            IndexDocument(
                doc_id=str(tweet.id),
                source={"id": tweet.id, "user": tweet.user, "message": tweet.message},
            )
        )


class RetryingProcessor:
    """Re-invokes a flaky processor before letting its error reach the runner.

    Only raised errors are retried; ``Fail`` outcomes are returned as-is.
    """

    def __init__(self, processor: RecordProcessor, policy: RetryPolicy) -> None:
        self.processor = processor
        self.policy = policy
        self.name = type(processor).__name__

    def process(self, item: Any) -> Outcome:
        try:
            return self.policy.call(lambda: self.processor.process(item), on_attempt_failure=self._log_attempt)
        except RetryExhaustedError as exc:
            # Surface the processor's own error so sink failures keep their type.
            error = exc.last_error
            raise error from error.__cause__

    def _log_attempt(self, attempt: int, exc: Exception) -> None:
        logger.warning(
            "processor attempt failed",
            extra={"processor": self.name, "attempt": attempt, "reason": str(exc)},
        )
