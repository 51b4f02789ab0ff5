"""
Exception hierarchy for the movie catalog.
"""


class CatalogError(Exception):
    """Base exception for all catalog errors."""
    pass


class ConfigurationError(CatalogError):
    """Raised when settings are missing or unsupported."""
    pass


class StoreNotInitializedError(CatalogError):
    """Raised when the database is used before it is opened, or cannot be opened."""
    pass


class PersistenceError(CatalogError):
    """Raised when a single database statement fails."""
    pass


class SnapshotWriteError(CatalogError):
    """Raised when the scan snapshot cannot be written."""
    pass


class ScanError(CatalogError):
    """Raised when a scan cannot continue; carries the failing stage."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
