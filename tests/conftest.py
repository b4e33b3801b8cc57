from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from batchline.config import Settings
from batchline.database import build_session_factory


TWEETS_CSV = """id,user,message
1,foo,easy batch rocks! #EasyBatch
2,bar,@foo I do confirm :-)
3,baz,"quoted, with a comma"

oops
"""


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="batchline",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        commit_interval=1,
        index_name="twitter",
        csv_delimiter=",",
        max_write_retries=0,
        retry_backoff_seconds=0,
        fail_fast=False,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> Generator[sessionmaker[Session], None, None]:
    factory = build_session_factory(test_settings.database_url)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture()
def tweets_csv(temp_workspace: Path) -> Path:
    path = temp_workspace / "data" / "tweets.csv"
    path.write_text(TWEETS_CSV, encoding="utf-8")
    return path
