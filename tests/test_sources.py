from pathlib import Path

import pytest

from batchline.database import populate_tweet_table
from batchline.errors import SourceUnavailable
from batchline.schemas import Tweet
from batchline.sources import FlatFileSource, IterableSource, SqlQuerySource


def test_flat_file_source_numbers_lines_and_strips_newlines(tmp_path: Path) -> None:
    path = tmp_path / "lines.txt"
    path.write_text("first\r\nsecond\n\nlast", encoding="utf-8")

    with FlatFileSource(path) as source:
        records = []
        while (record := source.next_record()) is not None:
            records.append(record)

    assert [(r.number, r.payload) for r in records] == [(1, "first"), (2, "second"), (3, ""), (4, "last")]
    assert {r.origin for r in records} == {str(path)}


def test_flat_file_source_missing_file_is_unavailable(tmp_path: Path) -> None:
    source = FlatFileSource(tmp_path / "missing.csv")

    with pytest.raises(SourceUnavailable):
        source.open()
    # Closing after a failed open is allowed.
    source.close()
    source.close()


def test_source_must_be_opened_before_reading() -> None:
    source = IterableSource(["a"])

    with pytest.raises(RuntimeError):
        source.next_record()


def test_closed_source_cannot_be_reused() -> None:
    source = IterableSource(["a", "b"])
    source.open()
    assert source.next_record().payload == "a"
    source.close()

    with pytest.raises(RuntimeError):
        source.next_record()
    with pytest.raises(RuntimeError):
        source.open()


def test_sql_query_source_yields_rows_as_dicts(session_factory) -> None:
    populate_tweet_table(session_factory, [Tweet(2, "bar", "second"), Tweet(1, "foo", "first")])

    source = SqlQuerySource(session_factory, 'SELECT id, "user", message FROM tweet ORDER BY id')
    source.open()
    try:
        first = source.next_record()
        second = source.next_record()
        end = source.next_record()
    finally:
        source.close()

    assert first.number == 1
    assert first.payload == {"id": 1, "user": "foo", "message": "first"}
    assert second.payload["user"] == "bar"
    assert end is None


def test_sql_query_source_binds_params(session_factory) -> None:
    populate_tweet_table(session_factory, [Tweet(1, "foo", "a"), Tweet(2, "bar", "b")])

    with SqlQuerySource(session_factory, 'SELECT id FROM tweet WHERE "user" = :user', {"user": "bar"}) as source:
        record = source.next_record()
        assert source.next_record() is None

    assert record.payload == {"id": 2}


def test_sql_query_source_bad_query_is_unavailable(session_factory) -> None:
    source = SqlQuerySource(session_factory, "SELECT * FROM no_such_table")

    with pytest.raises(SourceUnavailable):
        source.open()
    source.close()


def test_sql_query_source_can_stream_in_partitions(session_factory) -> None:
    populate_tweet_table(session_factory, [Tweet(n, f"user{n}", "hi") for n in range(1, 6)])

    source = SqlQuerySource(session_factory, "SELECT id FROM tweet ORDER BY id", fetch_size=2, buffered=False)
    with source:
        ids = []
        while (record := source.next_record()) is not None:
            ids.append(record.payload["id"])

    assert ids == [1, 2, 3, 4, 5]
