import json
import sqlite3

import pytest

from core.errors import PersistenceError, ScanError
from core.models import MovieMetadata
from db.catalog import count_movies
from scanner import scan_movies as scan_module
from db.init import open_store
from db.store import MovieStore
from scanner.scan_movies import MovieScanner, iter_media_files, run_scan, scan_movies
from scanner.snapshot import load_snapshot


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "data" / "media.json"


@pytest.fixture
def scanner_factory(media_root, store, snapshot_path):
    def _make(enricher=None, workers=1):
        return MovieScanner(media_root, store, snapshot_path, enricher=enricher, enrich_workers=workers)
    return _make


def _titles(entries):
    return sorted(e.title for e in entries)


def test_walk_filters_extensions(media_root, make_movie):
    make_movie("Heat (1995).mkv")
    make_movie("sub/dir/Alien (1979).AVI")
    make_movie("notes.txt")
    make_movie("Heat (1995)-poster.jpg")

    found = sorted(p.name for p in iter_media_files(media_root))

    assert found == ["Alien (1979).AVI", "Heat (1995).mkv"]


def test_first_scan_adds_everything(scanner_factory, make_movie, store, snapshot_path):
    make_movie("Heat (1995).mkv", size=5)
    make_movie("Action/The.Matrix.1999.1080p.BluRay.x264.mkv", size=7)

    result = scanner_factory().scan()

    assert result.total_files == 2
    assert _titles(result.added) == ["Heat", "The Matrix"]
    assert count_movies(store) == 2

    matrix = next(e for e in result.added if e.title == "The Matrix")
    assert matrix.year == "1999"
    assert matrix.filepath == "Action/The.Matrix.1999.1080p.BluRay.x264.mkv"
    assert matrix.poster == "Action/The.Matrix.1999.1080p.BluRay.x264-poster.jpg"
    assert matrix.filesize == 7
    assert matrix.format == "MKV"

    assert sorted(e.title for e in load_snapshot(snapshot_path)) == ["Heat", "The Matrix"]


def test_rescan_unchanged_directory(scanner_factory, make_movie):
    make_movie("Heat (1995).mkv")
    make_movie("Alien (1979).mp4")
    scanner_factory().scan()

    result = scanner_factory().scan()

    assert result.added == []
    assert result.updated == []
    assert result.removed == []
    assert len(result.unchanged) == 2


def test_unknown_year_uses_sentinel(scanner_factory, make_movie):
    make_movie("Some.Movie.720p.mkv")

    result = scanner_factory().scan()

    assert result.added[0].year == "0000"


def test_untitled_files_are_skipped(scanner_factory, make_movie):
    make_movie("1080p.x264.mkv")

    result = scanner_factory().scan()

    assert result.total_files == 1
    assert result.added == []


def test_duplicate_identity_is_not_enriched_or_persisted(scanner_factory, make_movie, store, fake_enricher):
    make_movie("a/The Matrix (1999).mkv")
    make_movie("b/The.Matrix.1999.720p.mp4")

    result = scanner_factory(enricher=fake_enricher).scan()

    assert len(result.added) == 1
    assert len(result.duplicates) == 1
    assert result.duplicates[0].title == "The Matrix"
    assert result.duplicates[0].filename != result.added[0].filename
    assert fake_enricher.calls == [("The Matrix", "1999")]
    assert count_movies(store) == 1


def test_size_change_is_an_update(scanner_factory, make_movie, store):
    path = make_movie("Heat (1995).mkv", size=10)
    scanner_factory().scan()

    path.write_bytes(b"y" * 20)
    result = scanner_factory().scan()

    assert [e.title for e in result.updated] == ["Heat"]
    assert result.unchanged == []
    assert store.fetch_all("SELECT filesize FROM Movie_Info")[0]["filesize"] == 20


def test_rename_with_same_identity_is_an_update(scanner_factory, make_movie, media_root, store):
    path = make_movie("Heat (1995).mkv")
    scanner_factory().scan()

    path.rename(media_root / "Heat.1995.1080p.mkv")
    result = scanner_factory().scan()

    assert [e.filename for e in result.updated] == ["Heat.1995.1080p.mkv"]
    assert store.fetch_all("SELECT filename FROM Movie_Info")[0]["filename"] == "Heat.1995.1080p.mkv"


def test_deleted_file_is_removed(scanner_factory, make_movie, store, monkeypatch):
    make_movie("Heat (1995).mkv")
    gone = make_movie("Alien (1979).mkv")
    scanner_factory().scan()
    gone.unlink()

    deletes = []
    original = scan_module.delete_movie

    def tracking_delete(s, movie):
        deletes.append(movie.filename)
        original(s, movie)

    monkeypatch.setattr(scan_module, "delete_movie", tracking_delete)
    result = scanner_factory().scan()

    assert [e.title for e in result.removed] == ["Alien"]
    assert deletes == ["Alien (1979).mkv"]
    assert count_movies(store) == 1


def test_corrupt_snapshot_treats_everything_as_added(scanner_factory, make_movie, snapshot_path):
    make_movie("Heat (1995).mkv")
    snapshot_path.parent.mkdir(parents=True)
    snapshot_path.write_text("[{broken", encoding="utf-8")

    result = scanner_factory().scan()

    assert _titles(result.added) == ["Heat"]


def test_lost_snapshot_does_not_break_existing_rows(scanner_factory, make_movie, snapshot_path, store):
    make_movie("Heat (1995).mkv")
    scanner_factory().scan()
    snapshot_path.unlink()

    result = scanner_factory().scan()

    assert _titles(result.added) == ["Heat"]
    assert result.failures == []
    assert count_movies(store) == 1


def test_enrichment_disabled_leaves_fields_empty(scanner_factory, make_movie, store):
    make_movie("Heat (1995).mkv")

    result = scanner_factory(enricher=None).scan()

    entry = result.added[0]
    assert (entry.imdb, entry.runtime, entry.rating, entry.overview, entry.poster_fallback) == ("", "", "", "", "")
    assert store.fetch_all("SELECT imdb FROM Movie_Info")[0]["imdb"] == ""


def test_enrichment_fields_are_stored(scanner_factory, make_movie, store, fake_enricher):
    make_movie("The Matrix (1999).mkv")

    scanner_factory(enricher=fake_enricher).scan()

    row = store.fetch_all("SELECT * FROM Movie_Info")[0]
    assert row["imdb"] == "tt0133093"
    assert row["runtime"] == "136 mins"


def test_enrichment_is_kept_when_later_lookup_misses(scanner_factory, make_movie, snapshot_path, fake_enricher):
    make_movie("The Matrix (1999).mkv")
    scanner_factory(enricher=fake_enricher).scan()

    result = scanner_factory(enricher=None).scan()

    assert result.unchanged[0].imdb == "tt0133093"
    assert load_snapshot(snapshot_path)[0].imdb == "tt0133093"


def test_parallel_enrichment_keeps_walk_order(scanner_factory, make_movie, media_root):
    class Enricher:
        def lookup_movie(self, title, year=None):
            return MovieMetadata(imdb=f"id-{title}", real_title=title)

    for i in range(6):
        make_movie(f"Movie {i} ({2000 + i}).mkv")
    walk_order = [p.name for p in iter_media_files(media_root)]

    result = scanner_factory(enricher=Enricher(), workers=4).scan()

    assert [e.filename for e in result.added] == walk_order
    assert all(e.imdb == f"id-{e.title}" for e in result.added)


def test_possible_duplicates_and_clusters(scanner_factory, make_movie):
    make_movie("a/Dune (1984).mkv")
    make_movie("b/Dune (2021).mkv")
    make_movie("c/Heat (1995).mkv")

    result = scanner_factory().scan()

    assert len(result.added) == 3
    assert [d.title for d in result.possible_duplicates] == ["Dune"]
    assert list(result.title_clusters) == ["Dune"]
    assert len(result.title_clusters["Dune"]) == 2


def test_precise_release_year_is_not_a_possible_duplicate(scanner_factory, make_movie, monkeypatch):
    class Enricher:
        def lookup_movie(self, title, year=None):
            if year == "0000":
                return MovieMetadata(real_title="Dune", release="2021", year="2021")
            return MovieMetadata(real_title="Dune", year=year)

    first = make_movie("a/Dune (1984).mkv")
    second = make_movie("b/Dune.mkv")
    monkeypatch.setattr(scan_module, "iter_media_files", lambda root: [first, second])

    result = scanner_factory(enricher=Enricher()).scan()

    assert result.possible_duplicates == []


def test_failed_insert_is_recorded_and_retried(scanner_factory, make_movie, snapshot_path, monkeypatch):
    make_movie("Heat (1995).mkv")
    make_movie("Alien (1979).mkv")

    def failing_insert(s, movie):
        if movie.title == "Alien":
            raise PersistenceError("disk full")
        s.execute(
            "INSERT INTO Movie_Info (title, year, filename) VALUES (?, ?, ?)",
            (movie.title, movie.year, movie.filename),
        )

    monkeypatch.setattr(scan_module, "insert_movie", failing_insert)
    result = scanner_factory().scan()

    assert [(f.operation, f.filename) for f in result.failures] == [("insert", "Alien (1979).mkv")]
    assert result.summary()["failedOperations"] == 1
    assert [e.title for e in load_snapshot(snapshot_path)] == ["Heat"]

    monkeypatch.undo()
    retry = scanner_factory().scan()
    assert [e.title for e in retry.added] == ["Alien"]


def test_failed_delete_stays_in_snapshot(scanner_factory, make_movie, snapshot_path, monkeypatch):
    gone = make_movie("Alien (1979).mkv")
    scanner_factory().scan()
    gone.unlink()

    def failing_delete(s, movie):
        raise PersistenceError("locked")

    monkeypatch.setattr(scan_module, "delete_movie", failing_delete)
    result = scanner_factory().scan()

    assert [f.operation for f in result.failures] == ["delete"]
    assert [e.title for e in load_snapshot(snapshot_path)] == ["Alien"]


def test_failed_update_keeps_previous_snapshot_record(scanner_factory, make_movie, snapshot_path, monkeypatch):
    path = make_movie("Heat (1995).mkv", size=10)
    scanner_factory().scan()
    path.write_bytes(b"y" * 20)

    def failing_update(s, movie):
        raise PersistenceError("locked")

    monkeypatch.setattr(scan_module, "update_movie", failing_update)
    result = scanner_factory().scan()

    assert [f.operation for f in result.failures] == ["update"]
    assert [e.filesize for e in load_snapshot(snapshot_path)] == [10]

    monkeypatch.undo()
    retry = scanner_factory().scan()
    assert [e.title for e in retry.updated] == ["Heat"]
    assert retry.failures == []
    assert load_snapshot(snapshot_path)[0].filesize == 20


def test_missing_media_root_raises(store, tmp_path):
    scanner = MovieScanner(tmp_path / "nowhere", store, tmp_path / "snap.json")
    with pytest.raises(ScanError) as exc:
        scanner.scan()
    assert exc.value.stage == "walk"


def test_closed_store_fails_before_walking_or_enriching(media_root, make_movie, fake_enricher, snapshot_path):
    make_movie("The Matrix (1999).mkv")
    make_movie("Heat (1995).mkv")
    closed = MovieStore(lambda: sqlite3.connect(":memory:"))
    scanner = MovieScanner(media_root, closed, snapshot_path, enricher=fake_enricher)

    with pytest.raises(ScanError) as exc:
        scanner.scan()

    assert exc.value.stage == "persist"
    assert fake_enricher.calls == []
    assert not snapshot_path.exists()


def test_summary_shape(scanner_factory, make_movie):
    make_movie("Heat (1995).mkv")

    summary = scanner_factory().scan().summary()

    assert summary["totalFiles"] == 1
    assert summary["newMovies"] == 1
    assert summary["updatedMovies"] == 0
    assert summary["removedMovies"] == 0
    assert summary["addedList"][0]["title"] == "Heat"
    json.dumps(summary)


def test_scan_movies_uses_settings(settings, store, make_movie):
    make_movie("Heat (1995).mkv")

    result = scan_movies(settings, store)

    assert _titles(result.added) == ["Heat"]
    assert settings.snapshot_path.exists()


def test_run_scan_opens_and_closes_the_store(settings, make_movie):
    make_movie("Heat (1995).mkv")

    result = run_scan(settings)

    assert _titles(result.added) == ["Heat"]
    with open_store(settings) as store:
        assert count_movies(store) == 1
