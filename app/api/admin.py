"""
Admin endpoints for the movie catalog.

This module provides:
- An incremental library scan
- A reset that empties the catalog and forgets the last scan

All actions require a valid admin token.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from api.movies import get_store
from core.auth import require_admin_token
from db.movie_repo import clear_movies
from scanner.scan_movies import scan_movies
from scanner.snapshot import delete_snapshot

router = APIRouter()


@router.post("/admin/scan")
def admin_scan(request: Request):
    require_admin_token(request)
    store = get_store(request)
    lock = request.app.state.scan_lock

    if not lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="A scan is already running")

    try:
        result = scan_movies(request.app.state.settings, store)
    finally:
        lock.release()

    return {
        "status": "ok",
        "mode": "incremental",
        **result.summary(),
    }


@router.post("/admin/reset")
def admin_reset(request: Request):
    require_admin_token(request)
    store = get_store(request)
    lock = request.app.state.scan_lock

    if not lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="A scan is already running")

    try:
        clear_movies(store)
        snapshot_deleted = delete_snapshot(request.app.state.settings.snapshot_path)
    finally:
        lock.release()

    logging.info("Movie_Info table has been cleared.")
    return {
        "status": "ok",
        "mode": "reset",
        "snapshotDeleted": snapshot_deleted,
    }
