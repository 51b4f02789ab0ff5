"""
TMDB metadata lookup helpers.

This module provides a thin client around the TMDB API for resolving
movies into the normalized metadata stored alongside catalog entries.
Lookups fail soft: any network or payload problem is logged and turns
into ``None``.
"""

import logging
import threading

import requests

from core.models import MovieMetadata, UNKNOWN_YEAR

TMDB_BASE = "https://api.themoviedb.org/3"
POSTER_BASE = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE = "https://image.tmdb.org/t/p/original"


class TmdbClient:
    def __init__(self, api_key: str, session: requests.Session | None = None, timeout: float = 10):
        """
        Args:
            session: used for every request when given; otherwise each
                thread gets its own ``requests.Session``.
        """
        self.api_key = api_key
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()

    @property
    def session(self):
        if self._shared_session is not None:
            return self._shared_session
        if not hasattr(self._local, "session"):
            self._local.session = requests.Session()
        return self._local.session

    def _tmdb_get(self, path, params=None):
        """
        Perform a GET request against the TMDB API and return parsed JSON.
        """
        if params is None:
            params = {}

        params["api_key"] = self.api_key

        try:
            resp = self.session.get(
                f"{TMDB_BASE}{path}",
                params=params,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logging.error(f"TMDB request failed ({path}): {e}")
            return None

    def lookup_movie(self, title: str, year: str | None = None) -> MovieMetadata | None:
        """
        Lookup a movie by title (and optional year).

        Issues a search followed by a details call for the top hit. When
        the search has exactly one result and no year was given, that
        result's release year is adopted and reported as ``release``.
        Returns None when nothing matched, TMDB could not be reached, or
        the payload had an unexpected shape.
        """
        if year == UNKNOWN_YEAR:
            year = None

        # 1) Search movie
        search_params = {"query": title}
        if year:
            search_params["year"] = year

        search = self._tmdb_get("/search/movie", search_params)
        results = search.get("results") if isinstance(search, dict) else None
        if not results:
            logging.info(f"TMDB: no match for {title} ({year or ''})")
            return None

        if not isinstance(results, list) or not isinstance(results[0], dict):
            logging.error(f"TMDB: unexpected search payload for {title}")
            return None

        movie = results[0]

        # 2) Fetch details
        details = self._tmdb_get(f"/movie/{movie.get('id')}")
        if not isinstance(details, dict):
            return None

        try:
            return self._to_metadata(movie, details, year, single_hit=len(results) == 1)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logging.error(f"TMDB: unexpected payload for {title}: {e}")
            return None

    @staticmethod
    def _to_metadata(movie, details, year, single_hit) -> MovieMetadata:
        release = ""
        if single_hit and not year:
            release = (movie.get("release_date") or "")[:4]
            year = release

        vote = movie.get("vote_average")
        poster_path = movie.get("poster_path")
        backdrop_path = details.get("backdrop_path")

        return MovieMetadata(
            tmdb=str(movie.get("id") or ""),
            imdb=details.get("imdb_id") or "",
            poster_fallback=f"{POSTER_BASE}{poster_path}" if poster_path else "",
            rating=f"{vote:.1f}" if isinstance(vote, (int, float)) else "",
            runtime=f"{details['runtime']} mins" if details.get("runtime") else "",
            overview=movie.get("overview") or "",
            year=year or "",
            release=release,
            backdrop=f"{BACKDROP_BASE}{backdrop_path}" if backdrop_path else "",
            popularity=str(details.get("popularity") or ""),
            real_title=movie.get("title") or "",
        )


def enricher_from_settings(settings):
    """
    Return a TmdbClient, or None when no API key is configured.
    """
    if not settings.tmdb_api_key:
        logging.warning("TMDB_API_KEY is not set; metadata enrichment disabled")
        return None
    return TmdbClient(settings.tmdb_api_key)
