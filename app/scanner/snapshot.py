"""
Scan snapshot file.

The snapshot is a JSON array of the entries accepted by the last
successful scan. It is the baseline the next scan diffs against and is
always replaced wholesale.
"""

import json
import logging
import os
from pathlib import Path

from core.errors import SnapshotWriteError
from core.models import FileEntry


def load_snapshot(path: Path) -> list[FileEntry]:
    """
    Read the previous scan's entries. A missing or unreadable file is an
    empty snapshot.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logging.info(f"No snapshot at {path}; treating library as new")
        return []
    except (OSError, ValueError) as e:
        logging.warning(f"Ignoring unreadable snapshot {path}: {e}")
        return []

    if not isinstance(raw, list):
        logging.warning(f"Ignoring snapshot {path}: expected a JSON array")
        return []

    entries = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("title"):
            logging.warning(f"Dropping malformed snapshot record: {item!r}")
            continue
        try:
            entries.append(FileEntry.from_dict(item))
        except (TypeError, ValueError) as e:
            logging.warning(f"Dropping malformed snapshot record: {e}")
    return entries


def save_snapshot(path: Path, entries: list[FileEntry]):
    """
    Atomically replace the snapshot with ``entries``.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8", newline="\n") as f:
            json.dump([e.to_dict() for e in entries], f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except OSError as e:
        raise SnapshotWriteError(f"Failed to write snapshot {path}: {e}") from e


def delete_snapshot(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
