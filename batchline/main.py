import argparse
import json
import logging
from pathlib import Path

from batchline.config import get_settings
from batchline.database import build_session_factory, dump_tweet_table
from batchline.jobs import run_index_tweets, run_load_csv
from batchline.run_store import list_runs, save_report
from batchline.schemas import PipelineReport


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run tweet batch jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser("load-csv", help="load tweets from a delimited file into the tweet table")
    load_parser.add_argument("--input", required=True, help="Path to the delimited tweets file")
    load_parser.add_argument(
        "--commit-interval",
        type=int,
        default=None,
        help="Commit a transaction every N written records",
    )

    index_parser = subparsers.add_parser("index-tweets", help="index the tweet table into the document index")
    index_parser.add_argument("--index", default=None, help="Index name, defaults to INDEX_NAME")
    index_parser.add_argument("--query", default=None, help="Only list indexed tweets containing this term")

    history_parser = subparsers.add_parser("history", help="show recent job runs")
    history_parser.add_argument("--limit", type=int, default=10, help="Number of runs to show")

    return parser.parse_args()


def _print_summary(job_name: str, run_id: int, report: PipelineReport) -> None:
    print(
        "job={job} run_id={run_id} state={state} read={read} filtered={filtered} processed={processed} failed={failed} duration={duration:.3f}s".format(
            job=job_name,
            run_id=run_id,
            state=report.state.value,
            read=report.read,
            filtered=report.filtered,
            processed=report.processed,
            failed=report.failed,
            duration=report.duration,
        )
    )
    for failure in report.failures:
        print(f"failed record={failure.number} stage={failure.stage} reason={failure.reason}")
    if report.error is not None:
        print(f"error={report.error}")


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)

    if args.command == "history":
        with session_factory() as db:
            for run in list_runs(db, limit=args.limit):
                print(
                    f"run_id={run.id} job={run.job_name} state={run.state} read={run.read_records} "
                    f"filtered={run.filtered_records} processed={run.processed_records} failed={run.failed_records}"
                )
        return

    if args.command == "load-csv":
        job_name = "load-csv"
        report = run_load_csv(settings, session_factory, Path(args.input), commit_interval=args.commit_interval)
    else:
        job_name = "index-tweets"
        report, index = run_index_tweets(settings, session_factory, index_name=args.index)

    with session_factory() as db:
        run = save_report(db, job_name, report)
    _print_summary(job_name, run.id, report)

    if job_name == "load-csv":
        for tweet in dump_tweet_table(session_factory):
            print(f"tweet: id={tweet.id} user={tweet.user} message={tweet.message}")
    else:
        result = index.search(args.query)
        print(f"Total tweets = {result.total}")
        for hit in result.hits:
            print(f"tweet: {json.dumps(hit.source, sort_keys=True)}")

    if not report.succeeded:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
