from collections.abc import Iterable

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from batchline.db_models import Base, TweetRow
from batchline.schemas import Tweet


def _use_explicit_sqlite_transactions(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT; take over transaction control so nested writes roll back alone.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, future=True, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _use_explicit_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def populate_tweet_table(session_factory: sessionmaker[Session], tweets: Iterable[Tweet]) -> int:
    count = 0
    with session_factory() as db:
        for tweet in tweets:
            db.merge(TweetRow(id=tweet.id, user=tweet.user, message=tweet.message))
            count += 1
        db.commit()
    return count


def dump_tweet_table(session_factory: sessionmaker[Session]) -> list[Tweet]:
    with session_factory() as db:
        rows = db.execute(select(TweetRow).order_by(TweetRow.id)).scalars().all()
        return [Tweet(id=row.id, user=row.user, message=row.message) for row in rows]
