"""
Application entry point.

This module creates the FastAPI app, opens the catalog database on
startup, and wires together the API routers.
"""

import logging
import threading

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from core.config import LOG_LEVEL, SCAN_ON_STARTUP, load_settings
from core.errors import CatalogError
from core.logs import setup_logging
from db.init import open_store
from api.admin import router as admin_router
from api.movies import router as movies_router
from scanner.scan_movies import scan_movies


def create_app(settings=None, store=None, scan_on_startup=False) -> FastAPI:
    """
    Build the API. A ``store`` passed in is used as-is and left open on
    shutdown; otherwise one is opened from ``settings`` at startup.
    """
    settings = settings or load_settings()

    app = FastAPI(title="Movie Catalog")
    app.state.settings = settings
    app.state.store = store
    # One scan at a time; concurrent requests are refused
    app.state.scan_lock = threading.Lock()

    @app.on_event("startup")
    def startup():
        """
        Open the database and initialize the schema.
        """
        if app.state.store is None:
            app.state.store = open_store(settings)
            app.state.owns_store = True

        # Optional library scan (runs once on startup)
        if scan_on_startup:
            with app.state.scan_lock:
                scan_movies(settings, app.state.store)

    @app.on_event("shutdown")
    def shutdown():
        if getattr(app.state, "owns_store", False):
            app.state.store.close()
            app.state.store = None

    @app.exception_handler(CatalogError)
    def catalog_error(request: Request, exc: CatalogError):
        logging.error(f"{request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # Catalog queries
    app.include_router(movies_router)

    # Scan and reset endpoints
    app.include_router(admin_router)

    # Movie files and sidecar posters
    app.mount(
        "/movies",
        StaticFiles(directory=settings.media_root, check_dir=False),
        name="movies",
    )

    return app


setup_logging(LOG_LEVEL)
app = create_app(scan_on_startup=SCAN_ON_STARTUP)
