"""
Public catalog endpoints.

This module exposes:
- title/year search for the client UI
- a random movie pick
- dashboard search and recently added listings
- dashboard filtering over the last scan snapshot

These endpoints are read-only and trusted based on network placement.
"""

from fastapi import APIRouter, HTTPException, Request

from db.catalog import (
    count_movies,
    filter_entries,
    random_movies,
    recent_movies,
    search_movies,
    with_poster_url,
)
from scanner.snapshot import load_snapshot

router = APIRouter()


def get_store(request: Request):
    store = request.app.state.store
    if store is None or not store.is_open:
        raise HTTPException(status_code=503, detail="Database is not initialized")
    return store


# ------------------------------------------------------------
# API
# ------------------------------------------------------------

@router.get("/api/search")
def api_search(request: Request, title: str = "", year: str = ""):
    store = get_store(request)
    media_root = request.app.state.settings.media_root

    rows = search_movies(store, title=title, year=year, limit=25)
    return [with_poster_url(row, media_root) for row in rows]


@router.get("/api/random")
def api_random(request: Request):
    store = get_store(request)

    rows = random_movies(store, limit=1)
    if not rows:
        raise HTTPException(status_code=404, detail="No movies found")

    return with_poster_url(rows[0], request.app.state.settings.media_root)


# ------------------------------------------------------------
# DASHBOARD
# ------------------------------------------------------------

@router.get("/dashboard/search")
def dashboard_search(request: Request, title: str = "", year: str = "",
                     format: str = "", imdb: str = ""):
    store = get_store(request)

    results = search_movies(
        store,
        title=title,
        year=year,
        format=format,
        imdb=imdb,
        limit=100,
        newest_first=True,
    )
    return {"count": len(results), "results": results}


@router.get("/dashboard/media")
def dashboard_media(request: Request):
    store = get_store(request)
    return {"media": recent_movies(store, limit=20), "total": count_movies(store)}


@router.get("/dashboard/movies")
def dashboard_movies(request: Request, title: str = "", year: str = "",
                     format: str = "", imdb: str = ""):
    entries = load_snapshot(request.app.state.settings.snapshot_path)
    results = filter_entries(entries, title=title, year=year, format=format, imdb=imdb)
    return {"total": len(results), "results": [e.to_dict() for e in results]}
