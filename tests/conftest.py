import sqlite3

import pytest

from core.config import Settings
from core.models import MovieMetadata
from db.init import init_db
from db.store import MovieStore


@pytest.fixture
def store():
    """Returns an open in-memory store with the schema initialized."""
    s = MovieStore(lambda: sqlite3.connect(":memory:", check_same_thread=False)).open()
    init_db(s)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def media_root(tmp_path):
    root = tmp_path / "movies"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path, media_root):
    return Settings(
        media_root=media_root,
        data_dir=tmp_path / "data",
        db_name="test",
        admin_scan_token="secret",
    )


@pytest.fixture
def make_movie(media_root):
    """Creates a movie file under the media root and returns its path."""
    def _make(relative, size=10):
        path = media_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x" * size)
        return path
    return _make


class FakeEnricher:
    """Records lookups and answers from a {title: MovieMetadata} table."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def lookup_movie(self, title, year=None):
        self.calls.append((title, year))
        return self.answers.get(title)


@pytest.fixture
def fake_enricher():
    return FakeEnricher({
        "The Matrix": MovieMetadata(
            tmdb="603",
            imdb="tt0133093",
            poster_fallback="https://image.tmdb.org/t/p/w500/matrix.jpg",
            rating="8.2",
            runtime="136 mins",
            overview="A hacker learns the truth.",
            year="1999",
            real_title="The Matrix",
        ),
    })
