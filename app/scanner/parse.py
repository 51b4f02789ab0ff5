"""
Movie filename parsing.

Turns a raw release filename into a best-effort (title, year, format)
triple. The result is a guess: callers must tolerate wrong or empty
titles and rely on the scanner's duplicate pass before trusting it.
"""

from pathlib import PurePath
from typing import NamedTuple
import re


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Preferred filename format:
#   Movie Title (YYYY)
TITLE_YEAR_PATTERN = re.compile(
    r"""
    (?P<title>.+?)             # Movie title
    \s+\( (?P<year>\d{4}) \)   # Year in parentheses
    """,
    re.VERBOSE,
)

# Separators folded into "." before tokenizing scene-style names
SEPARATOR_PATTERN = re.compile(r"[()\[\]\-_]")

YEAR_TOKEN = re.compile(r"\d{4}")

WHITESPACE = re.compile(r"\s+")

# Release-tag noise dropped from titles (compared lowercase)
NOISE_TAGS = {
    "1080p", "720p", "x264", "x265", "bluray", "webdl",
    "hdrip", "webrip", "hdtv", "yify", "rip",
}

# Kept with a trailing period when followed by a single-letter token
HONORIFICS = {"Mr", "Mrs", "Dr", "Ms", "St"}


class ParsedName(NamedTuple):
    title: str
    year: str
    format: str


def parse_movie_filename(filename: str) -> ParsedName:
    """
    Extract title, year and container format from a movie filename.

    Never raises. ``title`` may be empty and ``year`` is "" when no
    4-digit year could be found.
    """
    path = PurePath(filename)
    stem = path.stem
    fmt = path.suffix[1:].upper()

    match = TITLE_YEAR_PATTERN.search(stem)
    if match:
        title = match.group("title").replace(".", " ").strip()
        return ParsedName(title, match.group("year"), fmt)

    tokens = SEPARATOR_PATTERN.sub(".", stem).split(".")
    year = next((t for t in tokens if YEAR_TOKEN.fullmatch(t)), "")

    title_parts = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        following = tokens[i + 1] if i + 1 < len(tokens) else ""

        if token in HONORIFICS and len(following) == 1:
            title_parts.append(f"{token}.")
            i += 1
        elif token.lower() not in NOISE_TAGS and not (year and token == year):
            title_parts.append(token)
        i += 1

    title = WHITESPACE.sub(" ", " ".join(title_parts)).strip()

    # A bare year such as "2012.avi" is the title, not a release year
    if not title and YEAR_TOKEN.fullmatch(stem):
        title = stem
        year = ""

    return ParsedName(title, year, fmt)
