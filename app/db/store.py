"""
Database handle and SQL dialects.

``MovieStore`` wraps one DB-API connection with an explicit open/close
lifecycle. It is created once (at API startup or per CLI run) and passed
to the scanner and query helpers. All statements are written with ``?``
placeholders; the configured ``Dialect`` rewrites them and supplies the
engine-specific pieces (random ordering, upsert clause, table reset).
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from core.errors import PersistenceError, StoreNotInitializedError

SCHEMA_DIR = Path(__file__).parent


@dataclass(frozen=True)
class Dialect:
    name: str
    placeholder: str
    random_function: str
    schema_file: str
    clear_statements: tuple[str, ...]
    # Run after a clear has been committed to give space back
    compact_statement: str | None = None

    def sql(self, statement: str) -> str:
        if self.placeholder == "?":
            return statement
        return statement.replace("?", self.placeholder)

    def upsert_clause(self, columns) -> str:
        if self.name == "mysql":
            updates = ", ".join(f"{c} = VALUES({c})" for c in columns)
            return f"ON DUPLICATE KEY UPDATE {updates}"
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns)
        return f"ON CONFLICT(title, year) DO UPDATE SET {updates}"

    @property
    def schema(self) -> str:
        return (SCHEMA_DIR / self.schema_file).read_text(encoding="utf-8")


SQLITE = Dialect(
    name="sqlite",
    placeholder="?",
    random_function="RANDOM()",
    schema_file="schema.sqlite.sql",
    clear_statements=("DELETE FROM Movie_Info",),
    compact_statement="VACUUM",
)

MYSQL = Dialect(
    name="mysql",
    placeholder="%s",
    random_function="RAND()",
    schema_file="schema.mysql.sql",
    clear_statements=("TRUNCATE TABLE Movie_Info",),
)

DIALECTS = {d.name: d for d in (SQLITE, MYSQL)}


class MovieStore:
    def __init__(self, connect, dialect: Dialect = SQLITE):
        """
        Args:
            connect: zero-argument callable returning a DB-API connection.
            dialect: SQL variant matching the connection's engine.
        """
        self._connect = connect
        self.dialect = dialect
        self._conn = None
        self._db_error = sqlite3.Error
        # FastAPI runs sync endpoints on a thread pool; statements are serialized
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "MovieStore":
        if self._conn is not None:
            return self

        try:
            self._conn = self._connect()
        except Exception as e:
            raise StoreNotInitializedError(f"Failed to open {self.dialect.name} database: {e}") from e

        self._db_error = getattr(self._conn, "Error", sqlite3.Error)
        logging.info(f"Database opened ({self.dialect.name})")
        return self

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _require_conn(self):
        if self._conn is None:
            raise StoreNotInitializedError("Database is not initialized.")
        return self._conn

    def execute(self, statement: str, params=()) -> int:
        """Run a write statement and return the affected row count."""
        conn = self._require_conn()
        with self._lock:
            cur = conn.cursor()
            try:
                cur.execute(self.dialect.sql(statement), tuple(params))
                return cur.rowcount
            except self._db_error as e:
                raise PersistenceError(str(e)) from e
            finally:
                cur.close()

    def executescript(self, script: str):
        """Run ``;``-separated DDL statements."""
        for statement in script.split(";"):
            if statement.strip():
                self.execute(statement)
        self.commit()

    def fetch_all(self, statement: str, params=()) -> list[dict]:
        conn = self._require_conn()
        with self._lock:
            cur = conn.cursor()
            try:
                cur.execute(self.dialect.sql(statement), tuple(params))
                columns = [d[0] for d in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            except self._db_error as e:
                raise PersistenceError(str(e)) from e
            finally:
                cur.close()

    def commit(self):
        conn = self._require_conn()
        with self._lock:
            try:
                conn.commit()
            except self._db_error as e:
                raise PersistenceError(str(e)) from e

    def rollback(self):
        conn = self._require_conn()
        with self._lock:
            conn.rollback()
