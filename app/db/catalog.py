"""
Catalog query helpers.

This module provides read access to Movie_Info for the HTTP API:
filtered search, random picks and recently added movies, plus filtering
over the last scan snapshot.
"""

from pathlib import Path
from urllib.parse import quote

from db.store import MovieStore


def _where(title=None, year=None, format=None, imdb=None):
    conditions = []
    params = []

    if title:
        conditions.append("title LIKE ?")
        params.append(f"%{title}%")
    if year:
        conditions.append("year = ?")
        params.append(str(year))
    if format:
        conditions.append("format LIKE ?")
        params.append(f"%{format}%")
    if imdb:
        conditions.append("imdb LIKE ?")
        params.append(f"%{imdb}%")

    clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    return clause, params


def search_movies(store: MovieStore, title=None, year=None, format=None, imdb=None,
                  limit=25, newest_first=False):
    """
    Return rows matching every given filter.

    Results are ordered by title, or by ``added_at`` descending when
    ``newest_first`` is set.
    """
    clause, params = _where(title, year, format, imdb)
    order = "added_at DESC" if newest_first else "title ASC"
    return store.fetch_all(
        f"SELECT * FROM Movie_Info{clause} ORDER BY {order} LIMIT ?",
        (*params, int(limit)),
    )


def random_movies(store: MovieStore, limit=1, title=None, year=None):
    clause, params = _where(title, year)
    return store.fetch_all(
        f"SELECT * FROM Movie_Info{clause} ORDER BY {store.dialect.random_function} LIMIT ?",
        (*params, int(limit)),
    )


def recent_movies(store: MovieStore, limit=20):
    return search_movies(store, limit=limit, newest_first=True)


def count_movies(store: MovieStore) -> int:
    rows = store.fetch_all("SELECT COUNT(*) AS total FROM Movie_Info")
    return int(rows[0]["total"]) if rows else 0


def with_poster_url(row: dict, media_root: Path, base_url="/movies"):
    """
    Attach ``posterURL``: the local sidecar poster when it exists on disk,
    otherwise the TMDB fallback (or None).
    """
    poster = row.get("poster") or ""
    local = media_root / poster if poster else None

    if local is not None and local.is_file():
        poster_url = f"{base_url}/{quote(poster)}"
    else:
        poster_url = row.get("poster_fallback") or None

    return {**row, "posterURL": poster_url}


def filter_entries(entries, title=None, year=None, format=None, imdb=None):
    """
    Case-insensitive filtering over snapshot entries: substring match on
    title and imdb, exact match on year and format.
    """
    results = list(entries)

    if title:
        results = [e for e in results if title.lower() in e.title.lower()]
    if year:
        results = [e for e in results if e.year == str(year)]
    if format:
        results = [e for e in results if e.format.lower() == format.lower()]
    if imdb:
        results = [e for e in results if imdb.lower() in (e.imdb or "").lower()]

    return results
