import logging
import sqlite3
from functools import partial

import pymysql

from core.errors import ConfigurationError
from db.store import DIALECTS, MYSQL, MovieStore


def init_db(store: MovieStore):
    """
    Apply the Movie_Info schema. Idempotent: safe to run on every startup.
    """
    store.executescript(store.dialect.schema)
    logging.debug("Database schema initialized.")


def connection_factory(settings):
    """
    Return a zero-argument callable that opens the configured database.
    """
    if settings.db_type == MYSQL.name:
        logging.info(
            f"Connecting to database: mysql://{settings.db_user}@"
            f"{settings.db_host}:{settings.db_port}/{settings.db_name}"
        )
        return partial(
            pymysql.connect,
            host=settings.db_host,
            port=settings.db_port,
            user=settings.db_user,
            password=settings.db_pass,
            database=settings.db_name,
            charset="utf8mb4",
        )

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    logging.info(f"Connecting to database: {settings.sqlite_path}")
    return partial(sqlite3.connect, str(settings.sqlite_path), check_same_thread=False)


def open_store(settings) -> MovieStore:
    """
    Open the configured database and make sure the schema exists.
    """
    dialect = DIALECTS.get(settings.db_type)
    if dialect is None:
        raise ConfigurationError(f"Unsupported DB_TYPE: {settings.db_type!r}")

    store = MovieStore(connection_factory(settings), dialect).open()
    init_db(store)
    return store
