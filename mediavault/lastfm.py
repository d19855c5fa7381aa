# mediavault/lastfm.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional

from .client import Getter
from .config import settings

LASTFM_API = "https://ws.audioscrobbler.com/2.0/"


@dataclass
class TopTrack:
    title: str
    rank: int


def _atoi(v) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return 0


class LastFM:
    """Popular tracks and similar artists, looked up by MusicBrainz artist id."""

    def __init__(self, getter: Getter, api_key: Optional[str] = None):
        self.getter = getter
        self.api_key = api_key if api_key is not None else settings.LASTFM_API_KEY

    def _call(self, method: str, **params) -> Optional[dict]:
        if not self.api_key:
            return None
        return self.getter.get_json(LASTFM_API, params={
            "method": method, "api_key": self.api_key, "format": "json", **params,
        })

    def artist_top_tracks(self, arid: str) -> List[TopTrack]:
        data = self._call("artist.gettoptracks", mbid=arid) or {}
        tracks = (data.get("toptracks") or {}).get("track") or []
        tracks = sorted(tracks, key=lambda t: -_atoi(t.get("playcount")))
        return [TopTrack(title=t.get("name", ""), rank=_atoi((t.get("@attr") or {}).get("rank")))
                for t in tracks]

    def similar_artists(self, arid: str) -> Dict[str, float]:
        """mbid -> match score"""
        data = self._call("artist.getsimilar", mbid=arid) or {}
        rank: Dict[str, float] = {}
        for a in (data.get("similarartists") or {}).get("artist") or []:
            mbid = a.get("mbid")
            if not mbid:
                continue
            try:
                rank[mbid] = float(a.get("match") or 0)
            except ValueError:
                rank[mbid] = 0.0
        return rank
