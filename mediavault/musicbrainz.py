# mediavault/musicbrainz.py
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from .client import Getter

log = logging.getLogger("sync")

MB_API = "https://musicbrainz.org/ws/2"
CAA_API = "https://coverartarchive.org"

VARIOUS_ARTISTS = "Various Artists"

PRIMARY_ALBUM = "Album"
PRIMARY_SINGLE = "Single"
PRIMARY_EP = "EP"

# preferred when a release group carries several secondary types
_PREFERRED_SECONDARY = ("Soundtrack", "Compilation", "Remix", "Live")

_VIDEO_FORMATS = {"DVD-Video", "Blu-ray", "HD-DVD", "VCD", "SVCD"}

_RELEASE_INC = [
    "aliases", "artist-credits", "labels", "discids", "recordings", "artist-rels",
    "release-groups", "genres", "tags", "ratings", "recording-level-rels",
    "series-rels", "work-rels", "work-level-rels",
]
_GROUP_INC = ["releases", "media", "release-group-rels", "genres", "tags", "ratings", "series-rels"]


# -------- record helpers (records are plain MusicBrainz JSON dicts) --------

def filtered_media(release: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [m for m in release.get("media") or [] if m.get("format") not in _VIDEO_FORMATS]


def total_tracks(release: Dict[str, Any]) -> int:
    return sum(int(m.get("track-count") or 0) for m in filtered_media(release))


def total_discs(release: Dict[str, Any]) -> int:
    return len(filtered_media(release))


def secondary_type(group: Dict[str, Any]) -> str:
    types = group.get("secondary-types") or []
    if not types:
        return ""
    if len(types) == 1:
        return types[0]
    for t in _PREFERRED_SECONDARY:
        if t in types:
            return t
    return types[0]


def sorted_genres(record: Dict[str, Any]) -> List[Dict[str, Any]]:
    return sorted(record.get("genres") or [], key=lambda g: -int(g.get("count") or 0))


def primary_genre(record: Dict[str, Any]) -> str:
    genres = sorted_genres(record)
    return genres[0].get("name", "") if genres else ""


def credit_artist(credits: List[Dict[str, Any]]) -> str:
    """'A feat. B' from an artist-credit list."""
    out = ""
    for c in credits or []:
        join = c.get("joinphrase", "")
        if join in (" featuring ", " ft. "):
            join = " feat. "
        out += c.get("name", "") + join
    return out


def single_names(title: str) -> List[str]:
    # singles are often "side a / side b"
    return title.split(" / ")


class MusicBrainz:
    def __init__(self, getter: Getter):
        self.getter = getter

    def _get(self, path: str, **params: Any) -> Optional[Dict[str, Any]]:
        return self.getter.get_json(f"{MB_API}/{path}", params={"fmt": "json", **params})

    # -------- artists --------
    def _artist_search(self, query: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        data = self._get("artist", query=query, limit=limit, offset=offset) or {}
        return data.get("artists") or []

    def search_artist_id(self, arid: str) -> Optional[Dict[str, Any]]:
        artists = self._artist_search(f"arid:{arid}")
        return artists[0] if artists else None

    def _artist_search_exact(self, name: str) -> List[Dict[str, Any]]:
        for query in (f'artist:"{name}"', f'primary_alias:"{name}"', f'alias:"{name}"'):
            for a in self._artist_search(query):
                if a.get("name", "").casefold() == name.casefold():
                    return [a]
                for alias in a.get("aliases") or []:
                    if alias.get("name", "").casefold() == name.casefold():
                        return [a]
        return []

    def _multi_artist_search(self, name: str) -> List[Dict[str, Any]]:
        # "One & Two" or "One, Two & Three"
        if " & " not in name:
            return []
        names = [n for part in name.split(" & ") for n in part.split(", ")]
        for n in names:
            found = self._artist_search_exact(n)
            if found:
                return found
        return []

    def search_artist(self, name: str) -> Optional[Dict[str, Any]]:
        """Single confident match by name or alias, else None."""
        artists = self._artist_search_exact(name) or self._multi_artist_search(name)
        artists = [a for a in artists if int(a.get("score") or 0) >= 99]
        if len(artists) != 1:
            if len(artists) > 1:
                log.info("artist '%s': %d candidates", name, len(artists))
            return None
        return artists[0]

    def artist_detail(self, arid: str) -> Optional[Dict[str, Any]]:
        return self._get(f"artist/{arid}", inc="genres+url-rels")

    # -------- releases --------
    def artist_releases(self, arid: str) -> List[Dict[str, Any]]:
        releases: List[Dict[str, Any]] = []
        limit, offset = 100, 0
        while True:
            data = self._get("release", artist=arid, inc="release-groups+media",
                             limit=limit, offset=offset)
            if not data:
                break
            page = data.get("releases") or []
            releases.extend(page)
            offset += len(page)
            if not page or offset >= int(data.get("release-count") or 0):
                break
        return releases

    def release(self, reid: str) -> Optional[Dict[str, Any]]:
        return self._get(f"release/{reid}", inc="+".join(_RELEASE_INC))

    def release_group(self, rgid: str) -> Optional[Dict[str, Any]]:
        group = self._get(f"release-group/{rgid}", inc="+".join(_GROUP_INC))
        if group:
            for r in group.get("releases") or []:
                r.setdefault("title", group.get("title", ""))
        return group

    def group_releases(self, rgid: str) -> List[Dict[str, Any]]:
        group = self.release_group(rgid)
        if not group:
            return []
        out = []
        for r in group.get("releases") or []:
            r = dict(r)
            r["release-group"] = {k: v for k, v in group.items() if k != "releases"}
            out.append(r)
        return out

    def search_release_group(self, arid: str, name: str) -> List[Dict[str, Any]]:
        data = self._get("release-group/", query=f'arid:{arid} AND release:"{name}"') or {}
        return data.get("release-groups") or []

    def search_recordings(self, query: str, max_results: int = 100) -> List[Dict[str, Any]]:
        recordings: List[Dict[str, Any]] = []
        limit, offset = 10, 0
        while len(recordings) < max_results:
            data = self._get("recording", query=query, limit=limit, offset=offset)
            if not data:
                break
            page = data.get("recordings") or []
            recordings.extend(page)
            offset += len(page)
            if not page or offset >= int(data.get("count") or 0):
                break
        return recordings

    # -------- cover art --------
    def cover_art(self, reid: str, rgid: str = "") -> Optional[Dict[str, Any]]:
        data = self.getter.get_json(f"{CAA_API}/release/{reid}")
        if data is not None:
            data["from_group"] = False
            return data
        if rgid:
            data = self.getter.get_json(f"{CAA_API}/release-group/{rgid}")
            if data is not None:
                data["from_group"] = True
        return data
