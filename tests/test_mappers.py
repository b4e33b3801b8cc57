import pytest

from batchline.errors import MappingError
from batchline.filters import EmptyRecordFilter, HeaderRecordFilter, all_of
from batchline.mappers import DelimitedRecordMapper, RowRecordMapper
from batchline.schemas import RawRecord, Tweet


FIELDS = ("id", "user", "message")


def tweet_mapper(**kwargs) -> DelimitedRecordMapper:
    return DelimitedRecordMapper(Tweet, FIELDS, converters={"id": int}, **kwargs)


def test_delimited_mapper_builds_tweet() -> None:
    tweet = tweet_mapper().map(RawRecord(2, " 1 , foo , easy batch rocks! "))

    assert tweet == Tweet(id=1, user="foo", message="easy batch rocks!")


def test_delimited_mapper_keeps_quoted_delimiters() -> None:
    tweet = tweet_mapper().map(RawRecord(2, '3,baz,"quoted, with a comma"'))

    assert tweet.message == "quoted, with a comma"


def test_delimited_mapper_custom_delimiter() -> None:
    tweet = tweet_mapper(delimiter=";").map(RawRecord(2, "4;qux;a, b"))

    assert tweet == Tweet(4, "qux", "a, b")


@pytest.mark.parametrize(
    ("payload", "reason"),
    [
        ("1,foo", "expected 3 fields but found 2"),
        ("1,foo,bar,baz", "expected 3 fields but found 4"),
        ("1, ,hello", "user is required"),
        ("", "expected 3 fields but found 0"),
    ],
)
def test_delimited_mapper_rejects_incomplete_lines(payload: str, reason: str) -> None:
    with pytest.raises(MappingError) as excinfo:
        tweet_mapper().map(RawRecord(7, payload))

    assert excinfo.value.number == 7
    assert excinfo.value.reason == reason


def test_delimited_mapper_reports_coercion_failures() -> None:
    with pytest.raises(MappingError) as excinfo:
        tweet_mapper().map(RawRecord(3, "abc,foo,bar"))

    assert excinfo.value.reason.startswith("id has invalid value 'abc'")


def test_delimited_mapper_rejects_non_text_payload() -> None:
    with pytest.raises(MappingError):
        tweet_mapper().map(RawRecord(1, {"id": 1}))


def test_row_mapper_matches_columns_case_insensitively() -> None:
    mapper = RowRecordMapper(Tweet, FIELDS, converters={"id": int})

    tweet = mapper.map(RawRecord(1, {"ID": 5, "User": "foo", "MESSAGE": "hi"}))

    assert tweet == Tweet(5, "foo", "hi")


def test_row_mapper_missing_column_is_mapping_error() -> None:
    mapper = RowRecordMapper(Tweet, FIELDS, converters={"id": int})

    with pytest.raises(MappingError) as excinfo:
        mapper.map(RawRecord(4, {"id": 5, "user": "foo"}))

    assert excinfo.value.reason == "message is required"


def test_mapper_target_errors_become_mapping_errors() -> None:
    def strict_tweet(**values):
        raise ValueError("message too long")

    mapper = DelimitedRecordMapper(strict_tweet, FIELDS)

    with pytest.raises(MappingError) as excinfo:
        mapper.map(RawRecord(1, "1,a,b"))

    assert "message too long" in excinfo.value.reason


def test_header_filter_rejects_only_first_record() -> None:
    header = HeaderRecordFilter()

    assert header.accepts(RawRecord(1, "id,user,message")) is False
    assert header.accepts(RawRecord(2, "1,foo,bar")) is True


def test_empty_filter_rejects_blank_payloads() -> None:
    empty = EmptyRecordFilter()

    assert empty.accepts(RawRecord(1, "   ")) is False
    assert empty.accepts(RawRecord(2, None)) is False
    assert empty.accepts(RawRecord(3, "x")) is True
    assert empty.accepts(RawRecord(4, {"id": 1})) is True


def test_all_of_requires_every_filter() -> None:
    combined = all_of(HeaderRecordFilter(), EmptyRecordFilter())

    assert combined.accepts(RawRecord(1, "header")) is False
    assert combined.accepts(RawRecord(2, "")) is False
    assert combined.accepts(RawRecord(3, "1,a,b")) is True
