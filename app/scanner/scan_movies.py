"""
Movie filesystem scanner.

This module walks the movie directory, derives a (title, year) identity
for each file, enriches new identities via TMDB, and reconciles the
result against the previous scan's snapshot:

- Discovers movie files on disk
- Drops duplicate identities (first file seen wins)
- Classifies entries as added, updated, unchanged or removed
- Applies the matching insert/update/delete statements
- Replaces the snapshot with what was observed
"""

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
import logging
import os

from core.errors import PersistenceError, ScanError
from core.models import (
    DuplicateRecord,
    FileEntry,
    MovieMetadata,
    PersistenceFailure,
    UNKNOWN_YEAR,
)
from db.init import open_store
from db.movie_repo import delete_movie, insert_movie, update_movie
from db.store import MovieStore
from metadata.tmdb import enricher_from_settings
from scanner.parse import parse_movie_filename
from scanner.snapshot import load_snapshot, save_snapshot

VIDEO_EXTENSIONS = {".mp4", ".mkv", ".avi"}

DONE_LABELS = {"insert": "INSERTED", "update": "UPDATED", "delete": "DELETED"}


@dataclass
class ReconciliationResult:
    total_files: int = 0
    added: list[FileEntry] = field(default_factory=list)
    updated: list[FileEntry] = field(default_factory=list)
    unchanged: list[FileEntry] = field(default_factory=list)
    removed: list[FileEntry] = field(default_factory=list)
    duplicates: list[DuplicateRecord] = field(default_factory=list)
    possible_duplicates: list[DuplicateRecord] = field(default_factory=list)
    failures: list[PersistenceFailure] = field(default_factory=list)
    # Parsed title -> accepted entries, only for titles seen more than once
    title_clusters: dict[str, list[FileEntry]] = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        return {
            "scanned": self.total_files,
            "added": len(self.added),
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "removed": len(self.removed),
            "duplicates": len(self.duplicates),
            "possible_duplicates": len(self.possible_duplicates),
            "failures": len(self.failures),
        }

    def summary(self) -> dict:
        """Outward scan result used by the API and CLI."""
        return {
            "totalFiles": self.total_files,
            "newMovies": len(self.added),
            "updatedMovies": len(self.updated),
            "removedMovies": len(self.removed),
            "failedOperations": len(self.failures),
            "addedList": [m.to_dict() for m in self.added],
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _log_walk_error(err: OSError):
    logging.warning(f"Cannot read directory {err.filename}: {err.strerror}")


def iter_media_files(root: Path):
    """
    Yield movie files under ``root`` in directory-walk order.

    Symlinked directories are not followed.
    """
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        for name in filenames:
            if Path(name).suffix.lower() in VIDEO_EXTENSIONS:
                yield Path(dirpath) / name


def build_entry(path: Path, media_root: Path) -> FileEntry | None:
    """
    Parse and stat one file. Returns None when no title can be derived
    or the file vanished.
    """
    title, year, fmt = parse_movie_filename(path.name)
    if not title:
        logging.info(f"* SKIPPING: no title in {path.name}")
        return None

    try:
        size = path.stat().st_size
    except OSError as e:
        logging.warning(f"* SKIPPING: cannot stat {path}: {e}")
        return None

    relative = path.relative_to(media_root).as_posix()
    folder = Path(relative).parent.as_posix()

    return FileEntry(
        title=title,
        year=year or UNKNOWN_YEAR,
        filename=path.name,
        filepath=relative,
        format=fmt or path.suffix[1:].upper(),
        filesize=size,
        poster=f"{folder}/{path.stem}-poster.jpg",
    )


def apply_metadata(entry: FileEntry, meta: MovieMetadata):
    entry.poster_fallback = meta.poster_fallback
    entry.imdb = meta.imdb
    entry.runtime = meta.runtime
    entry.rating = meta.rating
    entry.overview = meta.overview


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class MovieScanner:
    def __init__(self,
                 media_root: Path,
                 store: MovieStore,
                 snapshot_path: Path,
                 enricher=None,
                 enrich_workers: int = 1):
        """
        Args:
            enricher: object with ``lookup_movie(title, year)``; None disables TMDB.
            enrich_workers: parallel TMDB lookups; 1 keeps them sequential.
        """
        self.media_root = Path(media_root)
        self.store = store
        self.snapshot_path = Path(snapshot_path)
        self.enricher = enricher
        self.enrich_workers = max(1, enrich_workers)

    def scan(self) -> ReconciliationResult:
        """
        Run one full reconciliation pass.

        Per-entry database failures are recorded in ``failures`` and do
        not stop the scan. A missing media root or closed store raise
        before anything is read; a failed commit or snapshot write raise
        after.
        """
        if not self.media_root.is_dir():
            raise ScanError("walk", f"Movies directory not found: {self.media_root}")
        if not self.store.is_open:
            raise ScanError("persist", "Database is not initialized")

        logging.info(f"Scanning {self.media_root}")
        previous = load_snapshot(self.snapshot_path)
        result = ReconciliationResult()

        files = list(iter_media_files(self.media_root))
        result.total_files = len(files)

        accepted = self._accept(files, result)
        metadata = self._enrich(accepted)
        for entry, meta in zip(accepted, metadata):
            if meta is not None:
                apply_metadata(entry, meta)
        self._flag_possible_duplicates(accepted, metadata, result)
        previous_by_key = self._diff(accepted, previous, result)

        self._apply(result)
        save_snapshot(self.snapshot_path, self._next_snapshot(accepted, previous_by_key, result))

        result.title_clusters = self._cluster(accepted)
        self._report(result)
        return result

    def _accept(self, files, result) -> list[FileEntry]:
        """Parse files in walk order, keeping the first file per identity key."""
        seen = set()
        accepted = []

        for path in files:
            entry = build_entry(path, self.media_root)
            if entry is None:
                continue

            if entry.key in seen:
                result.duplicates.append(DuplicateRecord(entry.title, entry.year, entry.filename))
                logging.info(f"* DUPLICATE: {entry.title} ({entry.year}) [{entry.filename}]")
                continue

            seen.add(entry.key)
            accepted.append(entry)

        return accepted

    def _lookup(self, entry: FileEntry):
        return self.enricher.lookup_movie(entry.title, entry.year)

    def _enrich(self, entries) -> list[MovieMetadata | None]:
        if self.enricher is None:
            return [None] * len(entries)

        if self.enrich_workers == 1:
            return [self._lookup(e) for e in entries]

        # map() keeps results in walk order
        with ThreadPoolExecutor(max_workers=self.enrich_workers) as executor:
            return list(executor.map(self._lookup, entries))

    def _flag_possible_duplicates(self, entries, metadata, result):
        seen_titles = set()

        for entry, meta in zip(entries, metadata):
            canonical = (meta.real_title if meta else "") or entry.title
            precise_year = bool(meta and meta.release)
            if canonical in seen_titles and not precise_year:
                result.possible_duplicates.append(
                    DuplicateRecord(entry.title, entry.year, entry.filename)
                )
                logging.info(f"* POSSIBLE DUPLICATE: {entry.title} [{entry.filename}]")

            if meta and meta.real_title:
                seen_titles.add(meta.real_title)
            seen_titles.add(entry.title)

    def _diff(self, entries, previous, result) -> dict:
        previous_by_key = {p.key: p for p in previous}

        for entry in entries:
            cached = previous_by_key.get(entry.key)

            if cached is None:
                result.added.append(entry)
                logging.info(f"ADDED: {entry.filename}")
                continue

            # Keep metadata fetched by earlier scans when this run has none
            if not entry.has_enrichment():
                entry.carry_enrichment(cached)

            if entry.file_differs(cached):
                result.updated.append(entry)
                logging.info(f"UPDATED: {entry.filename}")
            else:
                result.unchanged.append(entry)
                logging.debug(f"UNCHANGED: {entry.filename}")

        current_keys = {e.key for e in entries}
        for cached in previous:
            if cached.key not in current_keys:
                result.removed.append(cached)
                logging.info(f"* REMOVED: {cached.filename}")

        return previous_by_key

    def _persist(self, operation, func, movie, result):
        try:
            func(self.store, movie)
        except PersistenceError as e:
            result.failures.append(PersistenceFailure(operation, movie.filename, str(e), movie))
            logging.error(f"FAILED to {operation}: {movie.filename}: {e}")
            return
        logging.info(f"{DONE_LABELS[operation]}: {movie.filename}")

    def _apply(self, result):
        for movie in result.added:
            self._persist("insert", insert_movie, movie, result)
        for movie in result.updated:
            self._persist("update", update_movie, movie, result)
        for movie in result.removed:
            self._persist("delete", delete_movie, movie, result)

        try:
            self.store.commit()
        except PersistenceError as e:
            raise ScanError("persist", f"Commit failed: {e}") from e

    def _next_snapshot(self, entries, previous_by_key, result) -> list[FileEntry]:
        """
        Accepted entries, adjusted so failed statements are retried next scan.

        A failed insert is left out (seen as added again), a failed update
        keeps its previous record, and a failed delete stays in the snapshot.
        """
        failed = {(f.operation, f.entry.key): f for f in result.failures}

        snapshot = []
        for entry in entries:
            if ("insert", entry.key) in failed:
                continue
            if ("update", entry.key) in failed:
                snapshot.append(previous_by_key[entry.key])
                continue
            snapshot.append(entry)

        snapshot.extend(f.entry for f in result.failures if f.operation == "delete")
        return snapshot

    def _cluster(self, entries) -> dict[str, list[FileEntry]]:
        groups = defaultdict(list)
        for entry in entries:
            groups[entry.title].append(entry)
        return {title: group for title, group in groups.items() if len(group) > 1}

    def _report(self, result):
        counts = result.counts()
        logging.info("Scan Summary:")
        logging.info(f"  Total scanned: {counts['scanned']}")
        logging.info(f"  Added: {counts['added']}")
        logging.info(f"  Updated: {counts['updated']}")
        logging.info(f"  Unchanged: {counts['unchanged']}")
        logging.info(f"  Removed: {counts['removed']}")
        logging.info(f"  Duplicates: {counts['duplicates']}")
        logging.info(f"  Possible Duplicates: {counts['possible_duplicates']}")
        if result.failures:
            logging.warning(f"  Failed operations: {counts['failures']}")

        for d in result.duplicates:
            logging.info(f"Duplicate skipped: {d.title} ({d.year}) [{d.filename}]")
        for d in result.possible_duplicates:
            logging.info(f"Possible duplicate: {d.title} [{d.filename}]")
        for m in result.removed:
            logging.info(f"Removed: {m.title} ({m.year}) [{m.filename}]")

        for title, group in result.title_clusters.items():
            logging.info(f'"{title}" ({len(group)} files)')
            for m in group:
                logging.info(f"  - {m.title} ({m.year}) [{m.filename}]")


def scan_movies(settings, store: MovieStore) -> ReconciliationResult:
    """
    Scan the configured movie directory against an open store.
    """
    scanner = MovieScanner(
        media_root=settings.media_root,
        store=store,
        snapshot_path=settings.snapshot_path,
        enricher=enricher_from_settings(settings),
        enrich_workers=settings.enrich_workers,
    )
    return scanner.scan()


def run_scan(settings) -> ReconciliationResult:
    """
    Open the configured database, scan, and close it again.
    """
    with open_store(settings) as store:
        return scan_movies(settings, store)
