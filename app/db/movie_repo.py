"""
Movie database repository helpers.

Write helpers for Movie_Info rows, one statement per catalog entry.
Statements are not committed here; the scanner commits once its plan
has been applied.
"""

from core.models import FileEntry
from db.store import MovieStore

INSERT_COLUMNS = (
    "title", "year", "filename", "poster", "poster_fallback", "filepath",
    "filesize", "imdb", "format", "runtime", "rating", "overview",
)

# Columns refreshed when an insert hits an existing (title, year) row
UPSERT_COLUMNS = tuple(c for c in INSERT_COLUMNS if c not in ("title", "year"))


def insert_movie(store: MovieStore, movie: FileEntry):
    """
    Insert a catalog entry with its full field set.

    If the (title, year) row already exists (for example after the
    snapshot file was lost) it is refreshed in place.
    """
    placeholders = ", ".join("?" * len(INSERT_COLUMNS))
    store.execute(
        f"""
        INSERT INTO Movie_Info ({", ".join(INSERT_COLUMNS)})
        VALUES ({placeholders})
        {store.dialect.upsert_clause(UPSERT_COLUMNS)}
        """,
        tuple(getattr(movie, c) for c in INSERT_COLUMNS),
    )


def update_movie(store: MovieStore, movie: FileEntry):
    """
    Update the on-disk attributes of an existing entry, keyed by title and year.
    """
    store.execute(
        """
        UPDATE Movie_Info
        SET filename = ?, format = ?, filesize = ?, filepath = ?, poster = ?
        WHERE title = ? AND year = ?
        """,
        (
            movie.filename,
            movie.format,
            movie.filesize,
            movie.filepath,
            movie.poster,
            movie.title,
            movie.year,
        ),
    )


def delete_movie(store: MovieStore, movie: FileEntry):
    store.execute("DELETE FROM Movie_Info WHERE filename = ?", (movie.filename,))


def clear_movies(store: MovieStore):
    """
    Remove every catalog row.
    """
    for statement in store.dialect.clear_statements:
        store.execute(statement)
    store.commit()

    if store.dialect.compact_statement:
        store.execute(store.dialect.compact_statement)
