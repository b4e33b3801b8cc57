from collections.abc import Callable, Iterable
import logging
from typing import Any

from batchline.errors import MappingError, ProcessingError
from batchline.interfaces import (
    Continue,
    Fail,
    RecordFilter,
    RecordMapper,
    RecordProcessor,
    RecordSource,
    Stage,
    StopChain,
    as_stage,
)
from batchline.schemas import PipelineReport, RawRecord, RecordFailure, RunState


logger = logging.getLogger(__name__)


class _AbortRun(Exception):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


class PipelineRunner:
    """Pulls records from a source one at a time and pushes each through
    filter, mapper and the processor stages before reading the next.

    The runner owns the report; source, filter, mapper and processors are
    borrowed for the duration of :meth:`run` only.
    """

    def __init__(
        self,
        source: RecordSource,
        mapper: RecordMapper,
        processors: Iterable[Stage | RecordProcessor | Callable[[Any], Any]] = (),
        *,
        record_filter: RecordFilter | None = None,
        name: str = "pipeline",
    ) -> None:
        self.source = source
        self.mapper = mapper
        self.stages = [as_stage(processor) for processor in processors]
        self.record_filter = record_filter
        self.report = PipelineReport(name=name)

    @property
    def state(self) -> RunState:
        return self.report.state

    def run(self) -> PipelineReport:
        if self.report.state is not RunState.IDLE:
            raise RuntimeError(f"pipeline '{self.report.name}' has already been run")

        report = self.report
        report.start()
        logger.info("pipeline run started", extra={"pipeline": report.name})

        try:
            self.source.open()
            while True:
                record = self.source.next_record()
                if record is None:
                    break
                report.read += 1
                self._handle(record)
        except _AbortRun as exc:
            self._abort(exc.cause)
        except Exception as exc:
            # Source failures, including SourceUnavailable from open().
            self._abort(exc)
        finally:
            self._close_source()

        report.finish()

        logger.info("pipeline run finished", extra=report.summary())
        return report

    def _handle(self, record: RawRecord) -> None:
        report = self.report

        if not self._accepts(record):
            report.filtered += 1
            return

        try:
            item = self.mapper.map(record)
        except MappingError as exc:
            self._record_failure(record.number, "mapper", exc.reason)
            return
        except Exception as exc:
            self._record_failure(record.number, "mapper", str(exc))
            raise _AbortRun(exc) from exc

        for stage in self.stages:
            try:
                outcome = stage.apply(item)
            except Exception as exc:
                error = exc if isinstance(exc, ProcessingError) else ProcessingError(record.number, stage.label, str(exc))
                if error is not exc:
                    error.__cause__ = exc
                self._stage_failed(record.number, stage, error)
                return

            if isinstance(outcome, StopChain):
                break
            if isinstance(outcome, Fail):
                self._stage_failed(record.number, stage, ProcessingError(record.number, stage.label, outcome.reason))
                return
            if isinstance(outcome, Continue):
                item = outcome.value

        report.processed += 1

    def _accepts(self, record: RawRecord) -> bool:
        if self.record_filter is None:
            return True
        try:
            return bool(self.record_filter.accepts(record))
        except Exception:
            logger.debug("filter raised, rejecting record", exc_info=True, extra={"record": record.number})
            return False

    def _stage_failed(self, number: int, stage: Stage, error: ProcessingError) -> None:
        self._record_failure(number, stage.label, error.reason)
        if stage.fatal_on_error:
            raise _AbortRun(error)

    def _record_failure(self, number: int, stage: str, reason: str) -> None:
        self.report.failed += 1
        self.report.failures.append(RecordFailure(number=number, stage=stage, reason=reason))
        logger.warning(
            "record failed",
            extra={"pipeline": self.report.name, "record": number, "stage": stage, "reason": reason},
        )

    def _abort(self, cause: BaseException) -> None:
        self.report.abort(cause)
        logger.error("pipeline run aborted: %s", cause, extra={"pipeline": self.report.name})

    def _close_source(self) -> None:
        try:
            self.source.close()
        except Exception as exc:
            logger.exception("failed to close record source", extra={"pipeline": self.report.name})
            if self.report.error is None:
                self.report.abort(exc)
