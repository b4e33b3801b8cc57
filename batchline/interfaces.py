"""Capabilities the runner borrows from callers, and the outcome types
processors use to steer the rest of the chain."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from batchline.schemas import RawRecord


@runtime_checkable
class RecordSource(Protocol):
    def open(self) -> None: ...

    def next_record(self) -> RawRecord | None: ...

    def close(self) -> None: ...


class RecordFilter(Protocol):
    def accepts(self, record: RawRecord) -> bool: ...


class RecordMapper(Protocol):
    def map(self, record: RawRecord) -> Any: ...


@dataclass(frozen=True)
class Continue:
    value: Any


@dataclass(frozen=True)
class StopChain:
    pass


@dataclass(frozen=True)
class Fail:
    reason: str


STOP_CHAIN = StopChain()

Outcome = Continue | StopChain | Fail


@runtime_checkable
class RecordProcessor(Protocol):
    def process(self, item: Any) -> Outcome: ...


@dataclass(frozen=True)
class Stage:
    """A processor slot in the chain.

    When ``fatal_on_error`` is set, any failure in this stage aborts the run
    instead of being counted against the record.
    """

    processor: RecordProcessor | Callable[[Any], Any]
    name: str = ""
    fatal_on_error: bool = False

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return getattr(self.processor, "__name__", type(self.processor).__name__)

    def apply(self, item: Any) -> Outcome:
        if isinstance(self.processor, RecordProcessor):
            outcome = self.processor.process(item)
        else:
            outcome = self.processor(item)
        if isinstance(outcome, (Continue, StopChain, Fail)):
            return outcome
        # Plain callables hand back the next value directly.
        return Continue(outcome)


def as_stage(processor: "Stage | RecordProcessor | Callable[[Any], Any]") -> Stage:
    if isinstance(processor, Stage):
        return processor
    return Stage(processor)
