from collections.abc import Callable, Mapping
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from batchline.errors import SinkError
from batchline.index import DocumentIndex
from batchline.interfaces import STOP_CHAIN, Outcome
from batchline.schemas import IndexDocument


logger = logging.getLogger(__name__)


ParamsProvider = Callable[[Any], Mapping[str, Any]]


class SqlTableSink:
    """Writes each record with a parameterised SQL statement.

    A transaction is committed every ``commit_interval`` writes and once more
    when the sink is closed. Each write runs in its own savepoint, so a
    rejected record rolls back alone and the rest of the batch stays pending.
    ``rolled_back`` counts accepted writes lost to a failed commit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        statement: str,
        params: ParamsProvider,
        *,
        commit_interval: int = 1,
    ) -> None:
        if commit_interval < 1:
            raise ValueError("commit_interval must be at least 1")
        self.session_factory = session_factory
        self.statement = text(statement)
        self.params = params
        self.commit_interval = commit_interval
        self.written = 0
        self.committed = 0
        self.rolled_back = 0
        self._pending = 0
        self._db: Session | None = None

    def process(self, item: Any) -> Outcome:
        db = self._session()
        try:
            with db.begin_nested():
                db.execute(self.statement, dict(self.params(item)))
        except SQLAlchemyError as exc:
            raise SinkError(f"write failed: {exc}") from exc

        self.written += 1
        self._pending += 1
        if self._pending >= self.commit_interval:
            try:
                self.commit()
            except SinkError:
                # The raise reports this record as failed; only the rest of
                # the batch had already been counted as processed.
                self.rolled_back -= 1
                raise
        return STOP_CHAIN

    def commit(self) -> None:
        if self._db is None or self._pending == 0:
            return
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._rollback()
            raise SinkError(f"commit failed: {exc}") from exc
        self.committed += self._pending
        logger.debug("transaction committed", extra={"records": self._pending})
        self._pending = 0

    def close(self) -> None:
        if self._db is None:
            return
        try:
            self.commit()
        finally:
            self._db.close()
            self._db = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self._rollback()
        self.close()

    def _session(self) -> Session:
        if self._db is None:
            self._db = self.session_factory()
        return self._db

    def _rollback(self) -> None:
        if self._db is None:
            return
        self._db.rollback()
        if self._pending:
            logger.warning("rolled back uncommitted writes", extra={"records": self._pending})
        self.rolled_back += self._pending
        self._pending = 0


class IndexSink:
    def __init__(self, index: DocumentIndex) -> None:
        self.index = index
        self.indexed = 0

    def process(self, document: IndexDocument) -> Outcome:
        try:
            self.index.index(document)
        except SQLAlchemyError as exc:
            raise SinkError(f"cannot index document {document.doc_id}: {exc}") from exc
        self.indexed += 1
        return STOP_CHAIN


class CountingSink:
    def __init__(self) -> None:
        self.count = 0
        self.items: list[Any] = []

    def process(self, item: Any) -> Outcome:
        self.count += 1
        self.items.append(item)
        return STOP_CHAIN
