from dataclasses import asdict, dataclass, fields
from typing import Optional


# Sentinel stored when neither the filename nor TMDB gave a year
UNKNOWN_YEAR = "0000"


@dataclass
class FileEntry:
    """
    One movie file observed during a scan.
    """
    title: str
    year: str
    filename: str
    filepath: str          # relative to the media root, forward slashes
    format: str
    filesize: int
    poster: str            # predicted <dir>/<stem>-poster.jpg, may not exist

    # Enrichment (empty when TMDB is disabled or had no match)
    poster_fallback: str = ""
    imdb: str = ""
    runtime: str = ""
    rating: str = ""
    overview: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.title, self.year)

    def file_differs(self, other: "FileEntry") -> bool:
        """True when the on-disk attributes changed between two scans."""
        return (
            self.filename != other.filename
            or self.filepath != other.filepath
            or self.format != other.format
            or self.filesize != other.filesize
        )

    def has_enrichment(self) -> bool:
        return any((self.poster_fallback, self.imdb, self.runtime, self.rating, self.overview))

    def carry_enrichment(self, previous: "FileEntry"):
        """Copy enrichment fields from a previous scan's entry."""
        self.poster_fallback = previous.poster_fallback
        self.imdb = previous.imdb
        self.runtime = previous.runtime
        self.rating = previous.rating
        self.overview = previous.overview

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FileEntry":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["filesize"] = int(values.get("filesize") or 0)
        for name in ("title", "year", "filename", "filepath", "format", "poster"):
            values[name] = str(values.get(name) or "")
        return cls(**values)


@dataclass
class MovieMetadata:
    """
    Normalized TMDB lookup result.
    """
    tmdb: str = ""
    imdb: str = ""
    poster_fallback: str = ""
    rating: str = ""
    runtime: str = ""
    overview: str = ""
    year: str = ""
    release: str = ""       # set only when the year came from a unique search hit
    backdrop: str = ""
    popularity: str = ""
    real_title: str = ""


@dataclass
class DuplicateRecord:
    title: str
    year: str
    filename: str


@dataclass
class PersistenceFailure:
    operation: str          # insert / update / delete
    filename: str
    error: str
    entry: Optional[FileEntry] = None
