# mediavault/resolve.py
"""Expands playlist references into concrete entries.

A reference is an API-relative path such as /music/artists/12/radio or
/music/search?q=...; each recognized shape has a handler returning entries.
Unrecognized references and references to missing entities resolve to nothing.
Stations are the only reference that can contain another reference, and that
inner reference is resolved one level deep at most.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote, unquote, urlsplit

from .bucket import Bucket, FSBucket
from .client import Getter
from .config import MEDIA_FILM, MEDIA_MUSIC, MEDIA_TV
from .context import RequestContext
from .dates import interval, json_date, local_now
from .errors import NotFound
from .film import movie_location, poster
from .media_models import Episode, Movie, Series, Station, StationType, Track
from .music import cover, track_location
from .pls import PLSError, fetch_pls
from .podcast import episode_location
from .spiff import TYPE_MUSIC, TYPE_STREAM, Entry, Spiff, dedup, new_playlist, parse, to_xspf

log = logging.getLogger("resolve")

AUDIO_SUFFIXES = (".mp3", ".aac", ".ogg", ".flac")


# =======================
# Entries
# =======================

def track_entry(t: Track) -> Entry:
    return Entry(
        creator=t.preferred_artist,
        album=t.release_title or t.release,
        title=t.title,
        image=cover(t),
        location=[track_location(t)],
        identifier=[t.etag],
        size=[t.size],
        date=json_date(t.release_date),
    )


def movie_entry(m: Movie, creator: str = "") -> Entry:
    return Entry(
        creator=creator,
        album=m.title,
        title=m.title,
        image=poster(m),
        location=[movie_location(m)],
        identifier=[m.etag],
        size=[m.size],
        date=json_date(m.date),
    )


def episode_entry(s: Series, e: Episode) -> Entry:
    return Entry(
        creator=e.author or s.author,
        album=s.title,
        title=e.title,
        image=e.image or s.image,
        location=[episode_location(e)],
        identifier=[e.eid],
        size=[e.size],
        date=json_date(e.date),
    )


def track_entries(tracks: List[Track]) -> List[Entry]:
    return [track_entry(t) for t in tracks]


def creators(tracks: List[Track]) -> str:
    return " • ".join(sorted({t.artist for t in tracks}))


# =======================
# Resolver
# =======================

class Resolver:
    def __init__(self, ctx: RequestContext, getter: Optional[Getter] = None):
        self.ctx = ctx
        self.music = ctx.music
        self.getter = getter
        self.routes: List[Tuple[re.Pattern, Callable]] = [
            (re.compile(r"^/music/artists/([0-9a-zA-Z-]+)/(\w+)$"), self._artist),
            (re.compile(r"^/music/releases/([0-9a-zA-Z-]+)/tracks$"), self._release),
            (re.compile(r"^/music/tracks/(\d+)$"), self._track),
            (re.compile(r"^/music/tracks/(\d+)/radio$"), self._track_radio),
            (re.compile(r"^/music/search(?:\?.*)?$"), self._search),
            (re.compile(r"^/music/stations/([^/?]+)$"), self._station),
            (re.compile(r"^/music/playlists/([^/?]+)$"), self._playlist),
            (re.compile(r"^/movies/(\d+)$"), self._movie),
            (re.compile(r"^/podcasts/series/(\d+)$"), self._series),
            (re.compile(r"^/podcasts/episodes/(\d+)$"), self._episode),
            (re.compile(r"^/activity/tracks$"), self._activity_tracks),
        ]

    def _getter(self) -> Getter:
        if self.getter is None:
            self.getter = self.ctx.getter()
        return self.getter

    async def resolve(self, s: Spiff) -> Spiff:
        """Expand every reference in place, then drop duplicate entries."""
        s.playlist.entry = dedup(await self.expand(s.entries))
        return s

    async def expand(self, entries: List[Entry], depth: int = 0) -> List[Entry]:
        out: List[Entry] = []
        for e in entries:
            if not e.ref:
                out.append(e)
                continue
            out.extend(await self.resolve_ref(e.ref, depth))
        return out

    async def resolve_ref(self, ref: str, depth: int = 0) -> List[Entry]:
        for pattern, handler in self.routes:
            m = pattern.match(ref)
            if m is None:
                continue
            try:
                return await handler(ref, *m.groups(), depth=depth)
            except NotFound as e:
                log.debug("ref %s: %s", ref, e.code)
                return []
        log.debug("unrecognized ref %s", ref)
        return []

    # -------- music --------
    async def artist_tracks(self, id: str, res: str) -> List[Track]:
        music = self.music
        a = await music.find_artist(id)
        if res == "deep":
            return await music.artist_deep(a)
        if res == "popular":
            return await music.artist_popular_tracks(a)
        if res in ("radio", "similar"):
            return await music.artist_radio(a)
        if res in ("shuffle", "playlist"):
            return await music.artist_shuffle(a)
        if res == "singles":
            return await music.artist_singles(a)
        if res == "tracks":
            return await music.artist_tracks(a)
        return []

    async def _artist(self, ref: str, id: str, res: str, depth: int = 0) -> List[Entry]:
        return track_entries(await self.artist_tracks(id, res))

    async def _release(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        r = await self.music.find_release(id)
        return track_entries(await self.music.release_tracks(r))

    async def _track(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        return [track_entry(await self.music.find_track(id))]

    async def _track_radio(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        t = await self.music.find_track(id)
        return track_entries(await self.music.track_radio(t))

    async def search_tracks(self, q: str, radio: bool = False, match: int = 0) -> List[Track]:
        cfg = self.music.config
        if not q:
            return []
        tracks = await self.music.search(q, cfg.radio_search_limit if radio else cfg.search_limit)
        if match > 0:
            want = q.casefold()
            # exact title, then exact release, then exact track artist
            for same in (lambda t: t.title.casefold() == want,
                         lambda t: want in (t.release_title.casefold(), t.release.casefold()),
                         lambda t: t.track_artist.casefold() == want):
                best = [t for t in tracks if same(t)][:match]
                if best:
                    break
            tracks = best
        if radio:
            random.shuffle(tracks)
            tracks = tracks[:cfg.radio_limit]
        return tracks

    async def _search(self, ref: str, depth: int = 0) -> List[Entry]:
        params = parse_qs(urlsplit(ref).query)
        q = (params.get("q") or [""])[0]
        radio = bool((params.get("radio") or [""])[0])
        m = (params.get("m") or ["0"])[0]
        match = int(m) if m.isdigit() else 0
        tracks = await self.search_tracks(q, radio, match)
        if tracks:
            return track_entries(tracks)
        # no tracks; try a station by name
        if not q or depth > 0:
            return []
        s = await self.music.search_station(self.ctx.name, q)
        if s is None or (match and q.casefold() not in (s.name.casefold(), s.creator.casefold())):
            return []
        return (await self.refresh_station(s, depth + 1)).entries

    async def _station(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        if depth > 0:
            return []
        s = await self.music.lookup_station(self.ctx.name, unquote(id))
        return (await self.refresh_station(s, depth + 1)).entries

    async def _playlist(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        p = await self.music.lookup_playlist(self.ctx.name, unquote(id))
        return [e for e in parse(p.playlist).entries if not e.ref]

    async def _activity_tracks(self, ref: str, depth: int = 0) -> List[Entry]:
        found = await self.ctx.activity.tracks(self.ctx.name, self.ctx.media, interval("recent"))
        return track_entries([a.track for a in found])

    # -------- video and podcasts --------
    async def _movie(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        m = await self.ctx.film.find_movie(id)
        return [movie_entry(m, ", ".join(await self.ctx.film.directors(m)))]

    async def _series(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        podcast = self.ctx.podcast
        s = await podcast.find_series(id)
        return [episode_entry(s, e) for e in await podcast.episodes(s, podcast.config.episode_limit)]

    async def _episode(self, ref: str, id: str, depth: int = 0) -> List[Entry]:
        podcast = self.ctx.podcast
        e = await podcast.find_episode(id)
        return [episode_entry(await podcast.episode_series(e), e)]

    # =======================
    # Stations
    # =======================

    async def refresh_station(self, s: Station, depth: int = 1) -> Spiff:
        """The station's playlist; stream stations resolve their source, others their ref."""
        plist = new_playlist(TYPE_MUSIC, location=f"/api/stations/{s.id}", title=s.name,
                             image=s.image, creator=s.creator, date=json_date(local_now()))
        if s.type == StationType.stream.value:
            plist.type = TYPE_STREAM
            ref = s.ref.strip()
            if ref.endswith(".pls"):
                plist.playlist.entry = await self.pls_entries(ref, s.creator, s.image)
            elif ref.startswith("[{"):
                plist.playlist.entry = [await self.source_entry(ref, s)]
            elif ref.endswith(AUDIO_SUFFIXES):
                plist.playlist.entry = [Entry(creator=s.creator, title=s.name, image=s.image, location=[ref],
                                              size=[-1], date=json_date(local_now()))]
            else:
                log.info("unsupported stream %s", ref)
        elif depth <= 1:
            plist.playlist.entry = dedup(await self.resolve_ref(s.ref, depth))
        return plist

    async def _fetch_pls(self, url: str):
        try:
            return await asyncio.to_thread(fetch_pls, self._getter(), url)
        except PLSError as e:
            log.warning("pls %s: %s", url, e)
            return None

    async def pls_entries(self, url: str, creator: str, image: str) -> List[Entry]:
        p = await self._fetch_pls(url)
        if p is None:
            return []
        now = json_date(local_now())
        return [Entry(creator=creator, album=e.title, title=e.title, image=image, location=[e.file],
                      size=[e.length], date=now) for e in p.entries]

    async def source_entry(self, ref: str, s: Station) -> Entry:
        """One entry listing every variant of the stream; .pls sources are fetched concurrently."""
        try:
            sources = json.loads(ref)
        except ValueError as e:
            log.warning("station %s sources: %s", s.name, e)
            sources = []
        locations: List[str] = []
        sizes: List[int] = []
        pls_urls = []
        for src in sources:
            url = (src or {}).get("url", "")
            if not url:
                continue
            if url.endswith(".pls"):
                pls_urls.append(url)
            else:
                locations.append(url)
                sizes.append(-1)
        for p in await asyncio.gather(*(self._fetch_pls(u) for u in pls_urls)):
            if p is not None and p.entries:
                # first entry of each playlist
                locations.append(p.entries[0].file)
                sizes.append(p.entries[0].length)
        return Entry(creator=s.creator, album=s.name, title=s.name, image=s.image,
                     location=locations, size=sizes, date=json_date(local_now()))


# =======================
# Direct locations
# =======================

LOCATION_RE = re.compile(r"^/api/(tracks|movies|episodes|tv/episodes)/([^/]+)/location$")


def direct_url(ctx: RequestContext, bucket: Optional[Bucket], key: str) -> str:
    """A file-token URL for local files, the bucket's (presigned) URL otherwise."""
    if bucket is None:
        return ""
    if isinstance(bucket, FSBucket):
        return f"/d{quote(key)}?token={ctx.auth.new_file_token(key)}"
    return bucket.object_url(key)


async def locate(ctx: RequestContext, location: str) -> str:
    """Direct URL for an API-relative media location; other locations pass through."""
    m = LOCATION_RE.match(location)
    if m is None:
        return location
    kind, id = m.groups()
    media = ctx.media
    try:
        if kind == "tracks":
            t = await media.music.lookup_uuid(id)
            return direct_url(ctx, media.bucket_for(MEDIA_MUSIC, t.key), t.key) or location
        if kind == "movies":
            mv = await media.film.lookup_uuid(id)
            return direct_url(ctx, media.bucket_for(MEDIA_FILM, mv.key), mv.key) or location
        if kind == "tv/episodes":
            e = await media.tv.lookup_uuid(id)
            return direct_url(ctx, media.bucket_for(MEDIA_TV, e.key), e.key) or location
        if id.isdigit():
            return (await media.podcast.episode(int(id))).url or location
    except NotFound:
        pass
    return location


async def xspf(ctx: RequestContext, s: Spiff) -> str:
    direct: Dict[str, str] = {}
    for e in s.entries:
        for loc in e.location:
            if loc not in direct:
                direct[loc] = await locate(ctx, loc)
    return to_xspf(s, locate=lambda loc: direct.get(loc, loc))
