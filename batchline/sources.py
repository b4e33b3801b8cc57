from collections.abc import Iterable, Iterator, Mapping
import logging
from pathlib import Path
from typing import IO, Any

from sqlalchemy import text
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from batchline.errors import SourceUnavailable
from batchline.schemas import RawRecord


logger = logging.getLogger(__name__)


class _NumberedSource:
    """Shared numbering and context-manager plumbing for record sources.

    Subclasses implement ``_acquire``, ``_read_payload`` and ``_release``;
    ``_read_payload`` returns ``_END`` once the backing store is exhausted.
    """

    origin = ""

    def __init__(self) -> None:
        self._number = 0
        self._opened = False
        self._closed = False

    def open(self) -> None:
        if self._opened:
            raise RuntimeError(f"source '{self.origin}' is already open")
        self._acquire()
        self._opened = True

    def next_record(self) -> RawRecord | None:
        if not self._opened or self._closed:
            raise RuntimeError(f"source '{self.origin}' is not open")
        payload = self._read_payload()
        if payload is _END:
            return None
        self._number += 1
        return RawRecord(number=self._number, payload=payload, origin=self.origin)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _acquire(self) -> None:
        pass

    def _read_payload(self) -> Any:
        raise NotImplementedError

    def _release(self) -> None:
        pass


_END = object()


class IterableSource(_NumberedSource):
    def __init__(self, items: Iterable[Any], origin: str = "memory") -> None:
        super().__init__()
        self.items = items
        self.origin = origin
        self._iterator: Iterator[Any] | None = None

    def _acquire(self) -> None:
        self._iterator = iter(self.items)

    def _read_payload(self) -> Any:
        return next(self._iterator, _END)

    def _release(self) -> None:
        self._iterator = None


class FlatFileSource(_NumberedSource):
    """One record per line of a text file, line endings stripped."""

    def __init__(self, path: str | Path, encoding: str = "utf-8") -> None:
        super().__init__()
        self.path = Path(path)
        self.encoding = encoding
        self.origin = str(self.path)
        self._handle: IO[str] | None = None

    def _acquire(self) -> None:
        try:
            self._handle = self.path.open("r", encoding=self.encoding, newline="")
        except OSError as exc:
            raise SourceUnavailable(f"cannot open input file {self.path}: {exc}") from exc

    def _read_payload(self) -> Any:
        line = self._handle.readline()
        if line == "":
            return _END
        return line.rstrip("\r\n")

    def _release(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class SqlQuerySource(_NumberedSource):
    """One record per result row; the payload is the row as a plain dict.

    Rows are streamed in ``fetch_size`` partitions. On SQLite an open read
    cursor blocks commits from sinks writing to the same file, so there the
    result is fetched up front unless ``buffered`` says otherwise.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        query: str,
        params: Mapping[str, Any] | None = None,
        *,
        fetch_size: int = 1000,
        buffered: bool | None = None,
    ) -> None:
        super().__init__()
        self.session_factory = session_factory
        self.query = query
        self.params = dict(params or {})
        self.fetch_size = max(1, fetch_size)
        self.buffered = buffered
        self.origin = query
        self._db: Session | None = None
        self._result: Result | None = None
        self._rows: Iterator[Mapping[str, Any]] | None = None

    def _acquire(self) -> None:
        self._db = self.session_factory()
        buffered = self.buffered
        if buffered is None:
            buffered = self._db.get_bind().dialect.name == "sqlite"

        try:
            if buffered:
                rows = self._db.execute(text(self.query), self.params).mappings().all()
            else:
                self._result = self._db.execute(
                    text(self.query),
                    self.params,
                    execution_options={"yield_per": self.fetch_size},
                )
        except SQLAlchemyError as exc:
            self._db.close()
            self._db = None
            raise SourceUnavailable(f"cannot execute query '{self.query}': {exc}") from exc

        if buffered:
            # Read-only; end the transaction instead of holding it for the run.
            self._db.rollback()
            self._rows = iter(rows)
        else:
            self._rows = iter(self._result.mappings())

    def _read_payload(self) -> Any:
        row = next(self._rows, _END)
        if row is _END:
            return _END
        return dict(row)

    def _release(self) -> None:
        if self._result is not None:
            self._result.close()
            self._result = None
        if self._db is not None:
            self._db.rollback()
            self._db.close()
            self._db = None
        self._rows = None
        logger.debug("query source closed", extra={"query": self.query, "rows": self._number})
