# mediavault/tmdb.py
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from .client import Getter
from .config import settings
from .errors import ReleaseTypeNotFound

log = logging.getLogger("sync")

TMDB_API = "https://api.themoviedb.org/3"
IMG_BASE = "https://image.tmdb.org/t/p"   # /w342, /w500, /original, etc.

# release types, see https://developer.themoviedb.org/reference/movie-release-dates
TYPE_PREMIERE = 1
TYPE_THEATRICAL_LIMITED = 2
TYPE_THEATRICAL = 3
TYPE_DIGITAL = 4
TYPE_PHYSICAL = 5
TYPE_TV = 6

POSTER_SIZES = ("w154", "w342")
BACKDROP_SIZE = "w1280"
PROFILE_SIZE = "w185"
STILL_SIZE = "w300"


# -------- helpers: images & auth --------

def img_url(path: Optional[str], size: str = "w500") -> str:
    if not path:
        return ""
    return f"{IMG_BASE}/{size}{path}"


def _headers(api_key: str) -> Dict[str, str]:
    # TMDB v4 tokens look like JWTs; v3 is a plain hex string.
    return {"Authorization": f"Bearer {api_key}"} if api_key.count(".") >= 2 else {}


def _params(api_key: str) -> Dict[str, str]:
    # support both v4 bearer and v3 ?api_key=
    return {} if api_key.count(".") >= 2 else {"api_key": api_key}


def sorted_cast(credits: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
    cast = sorted(credits.get("cast") or [], key=lambda c: c.get("order", 0))
    return cast[:limit] if limit >= 0 else cast


def crew_with_jobs(credits: Dict[str, Any], jobs: List[str]) -> List[Dict[str, Any]]:
    wanted = set(jobs)
    return [c for c in credits.get("crew") or [] if c.get("job") in wanted]


def is_youtube_trailer(video: Dict[str, Any]) -> bool:
    return bool(video.get("official")) and video.get("type") == "Trailer" and video.get("site") == "YouTube"


def youtube_link(video: Dict[str, Any]) -> str:
    return f"https://www.youtube.com/watch?v={video.get('key', '')}"


class TMDB:
    def __init__(self, getter: Getter, api_key: Optional[str] = None, language: Optional[str] = None):
        self.getter = getter
        self.api_key = api_key if api_key is not None else settings.TMDB_API_KEY
        self.language = language or settings.TMDB_LANGUAGE

    def _get(self, path: str, **params: Any) -> Optional[Dict[str, Any]]:
        q = {**_params(self.api_key), "language": self.language, **params}
        return self.getter.get_json(f"{TMDB_API}/{path}", params=q, headers=_headers(self.api_key))

    # -------- movies --------
    def movie_search(self, query: str) -> List[Dict[str, Any]]:
        data = self._get("search/movie", query=query, include_adult="false")
        return (data or {}).get("results") or []

    def movie_detail(self, tmid: int) -> Optional[Dict[str, Any]]:
        return self._get(f"movie/{tmid}")

    def movie_credits(self, tmid: int) -> Dict[str, Any]:
        return self._get(f"movie/{tmid}/credits") or {}

    def movie_videos(self, tmid: int) -> List[Dict[str, Any]]:
        return (self._get(f"movie/{tmid}/videos") or {}).get("results") or []

    def movie_keyword_names(self, tmid: int) -> List[str]:
        data = self._get(f"movie/{tmid}/keywords") or {}
        return [k.get("name", "") for k in data.get("keywords") or [] if k.get("name")]

    def movie_release_type(self, tmid: int, country: str, release_type: int) -> Dict[str, Any]:
        """Certification record of one release type in one country."""
        data = self._get(f"movie/{tmid}/release_dates") or {}
        for r in data.get("results") or []:
            if r.get("iso_3166_1") != country:
                continue
            for rd in r.get("release_dates") or []:
                if rd.get("type") == release_type:
                    return rd
        raise ReleaseTypeNotFound()

    # -------- tv --------
    def tv_search(self, query: str) -> List[Dict[str, Any]]:
        data = self._get("search/tv", query=query, include_adult="false")
        return (data or {}).get("results") or []

    def tv_detail(self, tvid: int) -> Optional[Dict[str, Any]]:
        return self._get(f"tv/{tvid}")

    def tv_credits(self, tvid: int) -> Dict[str, Any]:
        return self._get(f"tv/{tvid}/credits") or {}

    def tv_keyword_names(self, tvid: int) -> List[str]:
        data = self._get(f"tv/{tvid}/keywords") or {}
        return [k.get("name", "") for k in data.get("results") or [] if k.get("name")]

    def tv_content_rating(self, tvid: int, country: str) -> str:
        data = self._get(f"tv/{tvid}/content_ratings") or {}
        for r in data.get("results") or []:
            if r.get("iso_3166_1") == country and r.get("rating"):
                return r["rating"]
        raise ReleaseTypeNotFound()

    def tv_episode_detail(self, tvid: int, season: int, episode: int) -> Optional[Dict[str, Any]]:
        return self._get(f"tv/{tvid}/season/{season}/episode/{episode}")

    def tv_episode_credits(self, tvid: int, season: int, episode: int) -> Dict[str, Any]:
        return self._get(f"tv/{tvid}/season/{season}/episode/{episode}/credits") or {}

    # -------- people --------
    def person_detail(self, peid: int) -> Optional[Dict[str, Any]]:
        return self._get(f"person/{peid}")
