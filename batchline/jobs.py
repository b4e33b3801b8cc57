"""The two tweet jobs: load a delimited file into the ``tweet`` table, and
index the ``tweet`` table into a document index."""

from pathlib import Path
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from batchline.config import Settings
from batchline.errors import SinkError
from batchline.filters import EmptyRecordFilter, HeaderRecordFilter, all_of
from batchline.index import DocumentIndex
from batchline.interfaces import RecordProcessor, Stage
from batchline.mappers import DelimitedRecordMapper, RowRecordMapper
from batchline.pipeline import PipelineRunner
from batchline.processors import RetryingProcessor, TweetTransformer
from batchline.retry import RetryPolicy
from batchline.schemas import PipelineReport, Tweet
from batchline.sinks import IndexSink, SqlTableSink
from batchline.sources import FlatFileSource, SqlQuerySource


logger = logging.getLogger(__name__)

TWEET_FIELDS = ("id", "user", "message")
SELECT_TWEETS = 'SELECT id, "user", message FROM tweet ORDER BY id'
INSERT_TWEET = 'INSERT INTO tweet (id, "user", message) VALUES (:id, :user, :message)'


def tweet_params(tweet: Tweet) -> dict[str, object]:
    return {"id": tweet.id, "user": tweet.user, "message": tweet.message}


def _is_transient(exc: Exception) -> bool:
    # Locked or dropped connections can succeed on a later attempt.
    cause = exc.__cause__
    return isinstance(cause, OperationalError)


def _sink_stage(settings: Settings, sink: RecordProcessor, name: str) -> Stage:
    if settings.max_write_retries > 0:
        policy = RetryPolicy(
            max_retries=settings.max_write_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            should_retry=_is_transient,
        )
        sink = RetryingProcessor(sink, policy)
    return Stage(sink, name=name, fatal_on_error=settings.fail_fast)


def run_load_csv(
    settings: Settings,
    session_factory: sessionmaker[Session],
    input_path: Path,
    *,
    commit_interval: int | None = None,
) -> PipelineReport:
    mapper = DelimitedRecordMapper(
        Tweet,
        TWEET_FIELDS,
        delimiter=settings.csv_delimiter,
        converters={"id": int},
    )
    interval = commit_interval or settings.commit_interval

    sink = SqlTableSink(session_factory, INSERT_TWEET, tweet_params, commit_interval=interval)
    runner = PipelineRunner(
        FlatFileSource(input_path),
        mapper,
        [_sink_stage(settings, sink, "tweet-writer")],
        record_filter=all_of(HeaderRecordFilter(), EmptyRecordFilter()),
        name="load-csv",
    )

    flush_error: SinkError | None = None
    try:
        with sink:
            report = runner.run()
    except SinkError as exc:
        # The final commit runs after the runner has finished counting.
        flush_error = exc

    if sink.rolled_back:
        report.discard_processed(sink.rolled_back)
    if flush_error is not None:
        report.abort(flush_error)
        logger.error("final commit failed: %s", flush_error, extra={"input": str(input_path)})

    logger.info(
        "tweets loaded",
        extra={"input": str(input_path), "committed": sink.committed, "rolled_back": sink.rolled_back},
    )
    return report


def run_index_tweets(
    settings: Settings,
    session_factory: sessionmaker[Session],
    *,
    index_name: str | None = None,
) -> tuple[PipelineReport, DocumentIndex]:
    index = DocumentIndex(session_factory, index_name or settings.index_name)
    sink = IndexSink(index)

    runner = PipelineRunner(
        SqlQuerySource(session_factory, SELECT_TWEETS),
        RowRecordMapper(Tweet, TWEET_FIELDS, converters={"id": int}),
        [Stage(TweetTransformer(), name="tweet-transformer"), _sink_stage(settings, sink, "tweet-indexer")],
        name="index-tweets",
    )
    report = runner.run()

    logger.info("tweets indexed", extra={"index": index.name, "indexed": sink.indexed})
    return report, index
