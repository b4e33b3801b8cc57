from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import time
from typing import Any


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class RawRecord:
    number: int
    payload: Any
    origin: str = ""


@dataclass(frozen=True)
class Tweet:
    id: int
    user: str
    message: str


@dataclass(frozen=True)
class IndexDocument:
    doc_id: str
    source: dict[str, object]


@dataclass(frozen=True)
class RecordFailure:
    number: int
    stage: str
    reason: str


@dataclass(frozen=True)
class SearchResult:
    total: int
    hits: list[IndexDocument]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class PipelineReport:
    """Counters and outcome of one pipeline run.

    Every record read ends up in exactly one of ``filtered``, ``processed``
    or ``failed``. ``error`` is only set for aborted runs. ``started_at`` and
    ``finished_at`` are wall-clock stamps for the ledger; ``duration`` is
    measured on the monotonic clock.
    """

    name: str
    state: RunState = RunState.IDLE
    read: int = 0
    filtered: int = 0
    processed: int = 0
    failed: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: BaseException | None = None
    failures: list[RecordFailure] = field(default_factory=list)
    _clock_start: float | None = field(default=None, repr=False)
    _elapsed: float | None = field(default=None, repr=False)

    def start(self) -> None:
        self.state = RunState.RUNNING
        self.started_at = utc_now()
        self._clock_start = time.monotonic()

    def finish(self) -> None:
        if self.state is RunState.RUNNING:
            self.state = RunState.COMPLETED
        self.finished_at = utc_now()
        if self._clock_start is not None:
            self._elapsed = time.monotonic() - self._clock_start

    def abort(self, error: BaseException) -> None:
        self.state = RunState.ABORTED
        self.error = error

    def discard_processed(self, count: int) -> None:
        """Move records whose writes were lost after the fact from
        ``processed`` to ``failed``."""
        moved = min(count, self.processed)
        self.processed -= moved
        self.failed += moved

    @property
    def duration(self) -> float:
        if self._elapsed is not None:
            return self._elapsed
        if self._clock_start is None:
            return 0.0
        return time.monotonic() - self._clock_start

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.COMPLETED

    def summary(self) -> dict[str, object]:
        return {
            "pipeline": self.name,
            "state": self.state.value,
            "read": self.read,
            "filtered": self.filtered,
            "processed": self.processed,
            "failed": self.failed,
            "duration_seconds": round(self.duration, 3),
            "error": str(self.error) if self.error else None,
        }
