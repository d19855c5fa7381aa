# mediavault/music_sync.py
"""Music ingestion.

A pass lists the music buckets, parses <artist>/<release>/<[disc-]track>-<title>
paths into Track rows, then for each touched artist: resolves the artist on
MusicBrainz, stores its releases, assigns a release to each track, pulls
popular tracks and similar artists from Last.fm, artist art from fanart.tv,
and finally writes the search index for the artist's tracks.
"""
from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select, update

from .bucket import Bucket, BucketObject
from .client import Getter
from .config import MEDIA_MUSIC
from .dates import parse_date
from .fanart import Fanart, artist_backgrounds, artist_thumbs
from .film_sync import warm_images
from .images import ImageCache, image_writer, upstream_url
from .lastfm import LastFM
from .media import Media
from .media_models import (
    Artist, ArtistImage, ArtistTag, Popular, Release, ReleaseMedia, Similar, Track,
)
from .music import cover
from .musicbrainz import (
    PRIMARY_SINGLE, VARIOUS_ARTISTS, MusicBrainz, credit_artist, filtered_media,
    primary_genre, secondary_type, single_names, sorted_genres, total_discs, total_tracks,
)
from .search import FieldMap, add_field
from .utils import fix_name, fuzzy_name, sort_title

log = logging.getLogger("sync")

TRACK_RE = re.compile(r".*/(.+?)/(.+?)/(?:(\d+)-)?(\d+)-(.+)\.(mp3|flac|ogg|m4a)$")
RELEASE_RE = re.compile(r"^(.+?)\s*\((\d{4})\)$")
ARTIST_CLEAN_RE = re.compile(r"[^a-zA-Z0-9& -]")

VARIOUS_ARTISTS_ID = "89ad4ac3-39f7-470e-963a-56509c546377"

# recording relation types indexed as-is
CREDIT_TYPES = {"producer", "engineer", "mix", "recording", "arranger", "conductor", "remixer", "orchestrator"}
WORK_CREDIT_TYPES = {"composer", "lyricist", "writer", "librettist"}
VOCAL_ATTRIBUTES = {"lead vocals": "lead vocals", "background vocals": "background vocals",
                    "co-lead vocals": "lead vocals", "additional vocals": "vocals"}
# instrument attributes are collapsed to a common name
INSTRUMENTS = {
    "bass": ("bass guitar", "electric bass guitar", "acoustic bass guitar", "double bass"),
    "clarinet": ("bass clarinet",),
    "drums": ("drums (drum set)", "drum machine", "drum set"),
    "flute": ("alto flute", "bass flute"),
    "guitar": ("electric guitar", "acoustic guitar", "bass guitar", "slide guitar", "lead guitar",
               "rhythm guitar", "twelve-string guitar", "classical guitar", "steel guitar"),
    "piano": ("grand piano", "electric piano", "upright piano"),
    "saxophone": ("alto saxophone", "tenor saxophone", "baritone saxophone", "soprano saxophone"),
}


@dataclass
class ParsedTrack:
    artist: str
    release: str
    date: str
    disc: int
    track: int
    title: str


def parse_track_path(path: str) -> Optional[ParsedTrack]:
    m = TRACK_RE.match(path)
    if not m:
        return None
    artist, release = m.group(1), m.group(2)
    date = ""
    rm = RELEASE_RE.match(release)
    if rm:
        release, date = rm.group(1), rm.group(2)
    disc = int(m.group(3)) if m.group(3) else 1
    return ParsedTrack(artist=artist, release=release, date=date, disc=disc,
                       track=int(m.group(4)), title=m.group(5))


def instrument_name(attr: str) -> str:
    attr = attr.lower()
    for name, alternates in INSTRUMENTS.items():
        if attr == name or attr in alternates:
            return name
    return attr


def relation_credits(recording: Dict[str, Any]) -> List[Tuple[str, str]]:
    """(field, artist name) credits from a recording and its works."""
    credits: List[Tuple[str, str]] = []
    for rel in recording.get("relations") or []:
        target = rel.get("target-type")
        rtype = (rel.get("type") or "").lower()
        if target == "artist":
            name = (rel.get("artist") or {}).get("name", "")
            if not name:
                continue
            attrs = [a.lower() for a in rel.get("attributes") or []]
            if rtype == "instrument":
                for a in attrs or ["instrument"]:
                    credits.append((instrument_name(a), name))
            elif rtype == "vocal":
                labels = [VOCAL_ATTRIBUTES[a] for a in attrs if a in VOCAL_ATTRIBUTES]
                for label in labels or ["vocals"]:
                    credits.append((label, name))
            elif rtype in CREDIT_TYPES:
                credits.append((rtype, name))
        elif target == "work" and rtype == "performance":
            for wrel in (rel.get("work") or {}).get("relations") or []:
                wtype = (wrel.get("type") or "").lower()
                name = (wrel.get("artist") or {}).get("name", "")
                if wrel.get("target-type") == "artist" and wtype in WORK_CREDIT_TYPES and name:
                    credits.append((wtype, name))
    return credits


def performance_types(recording: Dict[str, Any]) -> List[str]:
    """"cover" and "live" from work performance attributes."""
    out = []
    for rel in recording.get("relations") or []:
        if rel.get("target-type") == "work" and (rel.get("type") or "").lower() == "performance":
            for a in rel.get("attributes") or []:
                if a.lower() in ("cover", "live") and a.lower() not in out:
                    out.append(a.lower())
    return out


def group_series(release: Dict[str, Any]) -> List[str]:
    group = release.get("release-group") or {}
    names = []
    for rel in (group.get("relations") or []) + (release.get("relations") or []):
        if rel.get("target-type") == "series" and (rel.get("type") or "").lower() == "part of":
            name = (rel.get("series") or {}).get("name", "")
            if name and name not in names:
                names.append(name)
    return names


# =======================
# Release picking
# =======================

def release_names(r: Release) -> Set[str]:
    names = {fix_name(r.name).casefold()}
    if r.disambiguation:
        names.add(fix_name(f"{r.name} ({r.disambiguation})").casefold())
    if r.group_name:
        names.add(fix_name(r.group_name).casefold())
    return names


def release_rank(r: Release, countries: List[str]):
    country = countries.index(r.country) if r.country in countries else len(countries)
    return (
        country,
        not r.front_artwork,
        bool(r.disambiguation),
        r.status != "Official",
        r.release_date or datetime.max,
    )


def pick_release(releases: List[Release], media: Dict[str, List[ReleaseMedia]], name: str,
                 track_count: int, countries: List[str]) -> Tuple[Optional[Release], Optional[ReleaseMedia]]:
    """Best release for a local folder; falls back to a single matching medium."""
    want = fix_name(name).casefold()
    named = [r for r in releases if want in release_names(r)]
    if not named:
        named = [r for r in releases if fuzzy_name(r.name) == fuzzy_name(name)]
    named.sort(key=lambda r: release_rank(r, countries))
    for r in named:
        if r.track_count == track_count:
            return r, None
    for r in named:
        for m in media.get(r.reid, []):
            if m.track_count == track_count:
                return r, m
    return None, None


def _release_row(artist: str, r: Dict[str, Any]) -> Dict[str, Any]:
    group = r.get("release-group") or {}
    caa = r.get("cover-art-archive") or {}
    rtype = group.get("primary-type") or ""
    title = r.get("title", "")
    return dict(
        artist=artist,
        name=title,
        sort_name=sort_title(title),
        rgid=group.get("id", ""),
        reid=r.get("id", ""),
        disambiguation=r.get("disambiguation") or "",
        type=rtype,
        secondary_types=",".join(group.get("secondary-types") or []),
        country=r.get("country") or "",
        date=parse_date(group.get("first-release-date") or ""),
        release_date=parse_date(r.get("date") or ""),
        track_count=total_tracks(r),
        disc_count=total_discs(r),
        artwork=bool(caa.get("artwork")),
        front_artwork=bool(caa.get("front")),
        single_name=single_names(title)[0] if rtype == PRIMARY_SINGLE else "",
        group_name=group.get("title") or "",
        status=r.get("status") or "",
        asin=r.get("asin") or "",
    )


class MusicSync:
    """One music sync pass over a media collection."""

    def __init__(self, media: Media, mb: Optional[MusicBrainz] = None, lastfm: Optional[LastFM] = None,
                 fanart: Optional[Fanart] = None):
        getter = None
        if mb is None or lastfm is None or fanart is None:
            getter = Getter(min_interval=1.0)
        self.media = media
        self.config = media.config.music
        self.mb = mb or MusicBrainz(getter)
        self.lastfm = lastfm or LastFM(getter)
        self.fanart = fanart or Fanart(getter)

    # -------- bucket --------
    async def sync_bucket(self, bucket: Bucket, since: Optional[datetime], artist: str = "") -> Set[str]:
        """Insert or update tracks for new objects; returns the artist names touched."""
        objects: List[BucketObject] = await asyncio.to_thread(lambda: list(bucket.list(since)))
        touched: Set[str] = set()
        listed: Set[str] = set()
        async with self.media.session() as db:
            for obj in objects:
                p = parse_track_path(obj.path)
                if p is None:
                    continue
                if artist and p.artist != artist:
                    continue
                listed.add(obj.key)
                t = (await db.execute(select(Track).where(Track.key == obj.key))).scalars().first()
                if t is not None and t.etag == obj.etag:
                    continue
                if t is None:
                    t = Track(key=obj.key)
                    db.add(t)
                t.artist, t.release, t.date = p.artist, p.release, p.date
                t.title, t.track_num, t.disc_num = p.title, p.track, p.disc
                t.size, t.etag, t.last_modified = obj.size, obj.etag, obj.last_modified
                # reassigned below
                t.reid = t.rgid = t.rid = ""
                touched.add(p.artist)
            await db.commit()

            if since is None and not artist:
                gone = (await db.execute(select(Track).where(
                    Track.key.not_in(listed) if listed else Track.id.is_not(None)))).scalars().all()
                gone = [t for t in gone if self.media.bucket_for(MEDIA_MUSIC, t.key) is bucket]
                if gone:
                    await db.execute(delete(Track).where(Track.id.in_([t.id for t in gone])))
                    await db.commit()
                    await self.media.music_index.delete([t.key for t in gone])
                    touched.update(t.artist for t in gone)
                    log.info("music: removed %d tracks", len(gone))
        await self.update_track_counts(touched)
        return touched

    async def update_track_counts(self, artists: Iterable[str]) -> None:
        artists = list(artists)
        if not artists:
            return
        async with self.media.session() as db:
            rows = (await db.execute(
                select(Track.artist, Track.release, Track.date, func.count(Track.id), func.max(Track.disc_num))
                .where(Track.artist.in_(artists))
                .group_by(Track.artist, Track.release, Track.date))).all()
            for artist, release, date, count, discs in rows:
                await db.execute(update(Track).where(
                    Track.artist == artist, Track.release == release, Track.date == date,
                ).values(track_count=count, disc_count=discs or 1))
            await db.commit()

    # -------- artists --------
    def _find_artist(self, name: str) -> Optional[Dict[str, Any]]:
        arid = self.media.config.user_artist_id(name)
        if arid:
            return self.mb.search_artist_id(arid)
        a = self.mb.search_artist(name)
        if a is None:
            clean = ARTIST_CLEAN_RE.sub("", name)
            if clean != name:
                a = self.mb.search_artist(clean)
        return a

    def _artist_from_recordings(self, name: str, titles: List[str]) -> Optional[Dict[str, Any]]:
        """Most common credited artist across recordings of the local titles."""
        votes: Counter = Counter()
        found: Dict[str, Dict[str, Any]] = {}
        for title in titles[:5]:
            for rec in self.mb.search_recordings(f'artist:"{name}" AND recording:"{title}"', 10):
                for credit in rec.get("artist-credit") or []:
                    a = credit.get("artist") or {}
                    if a.get("id") and fuzzy_name(a.get("name", "")) == fuzzy_name(name):
                        votes[a["id"]] += 1
                        found[a["id"]] = a
        if not votes:
            return None
        return found[votes.most_common(1)[0][0]]

    async def sync_artist(self, name: str) -> Optional[Artist]:
        a = await asyncio.to_thread(self._find_artist, name)
        if a is None:
            async with self.media.session() as db:
                titles = list((await db.execute(
                    select(Track.title).where(Track.artist == name).distinct().limit(5))).scalars().all())
            a = await asyncio.to_thread(self._artist_from_recordings, name, titles)
        if a is None:
            log.info("music: artist '%s' not found", name)
            return None
        arid = a["id"]
        detail = await asyncio.to_thread(self.mb.artist_detail, arid) or a
        canonical = a.get("name") or name

        async with self.media.session() as db:
            if canonical != name:
                # the catalogue name wins; local folders follow it
                await db.execute(update(Track).where(Track.artist == name).values(artist=canonical))
                log.info("music: artist '%s' -> '%s'", name, canonical)
            row = (await db.execute(select(Artist).where(Artist.name == canonical))).scalars().first()
            if row is None:
                row = Artist(name=canonical)
                db.add(row)
            span = detail.get("life-span") or {}
            row.sort_name = detail.get("sort-name") or canonical
            row.arid = arid
            row.disambiguation = detail.get("disambiguation") or ""
            row.country = detail.get("country") or ""
            row.area = (detail.get("area") or {}).get("name", "")
            row.date = parse_date(span.get("begin") or "")
            row.end_date = parse_date(span.get("end") or "")
            row.genre = primary_genre(detail)
            await db.execute(delete(ArtistTag).where(ArtistTag.artist == canonical))
            for g in sorted_genres(detail):
                db.add(ArtistTag(artist=canonical, tag=g.get("name", ""), count=int(g.get("count") or 0)))
            await db.commit()
        return row

    # -------- releases --------
    def _fetch_releases(self, a: Artist, names: List[str]) -> List[Dict[str, Any]]:
        if a.name != VARIOUS_ARTISTS:
            return self.mb.artist_releases(a.arid)
        releases = []
        for name in names:
            for group in self.mb.search_release_group(a.arid or VARIOUS_ARTISTS_ID, name):
                releases.extend(self.mb.group_releases(group.get("id", "")))
        return releases

    async def sync_releases(self, a: Artist) -> int:
        async with self.media.session() as db:
            names = list((await db.execute(
                select(Track.release).where(Track.artist == a.name).distinct())).scalars().all())
        releases = await asyncio.to_thread(self._fetch_releases, a, names)
        if not releases:
            return 0
        async with self.media.session() as db:
            existing = {r.reid: r for r in (await db.execute(
                select(Release).where(Release.artist == a.name))).scalars().all()}
            seen: Set[str] = set()
            for r in releases:
                values = _release_row(a.name, r)
                reid = values["reid"]
                if not reid or reid in seen:
                    continue
                seen.add(reid)
                row = existing.get(reid)
                if row is None:
                    db.add(Release(**values))
                else:
                    for k, v in values.items():
                        setattr(row, k, v)
                await db.execute(delete(ReleaseMedia).where(ReleaseMedia.reid == reid))
                for m in filtered_media(r):
                    db.add(ReleaseMedia(reid=reid, name=m.get("title") or "", position=int(m.get("position") or 1),
                                        format=m.get("format") or "", track_count=int(m.get("track-count") or 0)))
            stale = [reid for reid in existing if reid not in seen]
            if stale:
                await db.execute(delete(Release).where(Release.artist == a.name, Release.reid.in_(stale)))
            await db.commit()
        return len(seen)

    async def assign_releases(self, a: Artist, resolve: bool = False) -> int:
        """Give each unassigned track (every track when resolving) a release."""
        music = self.media.music
        releases = await music.all_artist_releases(a.name)
        if not releases:
            return 0
        async with self.media.session() as db:
            media_rows = (await db.execute(select(ReleaseMedia).where(
                ReleaseMedia.reid.in_([r.reid for r in releases])))).scalars().all()
            by_reid: Dict[str, List[ReleaseMedia]] = {}
            for m in media_rows:
                by_reid.setdefault(m.reid, []).append(m)

            stmt = select(Track).where(Track.artist == a.name)
            if not resolve:
                stmt = stmt.where(Track.reid == "")
            tracks = (await db.execute(stmt)).scalars().all()
            groups: Dict[Tuple[str, str], List[Track]] = {}
            for t in tracks:
                groups.setdefault((t.release, t.date), []).append(t)

            assigned = 0
            for (name, _date), group in groups.items():
                r, medium = pick_release(releases, by_reid, name, group[0].track_count,
                                         self.config.release_countries)
                if r is None:
                    log.info("music: no release for %s / %s (%d tracks)", a.name, name, group[0].track_count)
                    continue
                for t in group:
                    t.reid, t.rgid = r.reid, r.rgid
                    t.release_date = r.release_date
                    t.artwork, t.front_artwork, t.group_artwork = r.artwork, r.front_artwork, r.group_artwork
                    t.release_title = r.name
                    t.media_title = ""
                    if medium is not None:
                        t.disc_num = medium.position
                        if medium.name:
                            t.media_title = medium.name
                            t.release_title = f"{medium.name} ({r.name})"
                    assigned += 1
            await db.commit()
        return assigned

    # -------- last.fm --------
    async def sync_popular(self, a: Artist) -> int:
        top = await asyncio.to_thread(self.lastfm.artist_top_tracks, a.arid)
        top = top[:self.config.popular_limit]
        async with self.media.session() as db:
            await db.execute(delete(Popular).where(Popular.artist == a.name))
            for i, t in enumerate(top):
                db.add(Popular(artist=a.name, title=t.title, rank=i + 1))
            await db.commit()
        return len(top)

    async def sync_similar(self, a: Artist) -> int:
        scores = await asyncio.to_thread(self.lastfm.similar_artists, a.arid)
        async with self.media.session() as db:
            known = set((await db.execute(
                select(Artist.arid).where(Artist.arid.in_(list(scores.keys()))))).scalars().all())
            ranked = sorted((arid for arid in scores if arid in known), key=lambda k: -scores[k])
            await db.execute(delete(Similar).where(Similar.artist == a.name))
            for i, arid in enumerate(ranked):
                db.add(Similar(artist=a.name, arid=arid, rank=i))
            await db.commit()
        return len(ranked)

    # -------- fanart --------
    async def sync_artwork(self, a: Artist) -> int:
        art = await asyncio.to_thread(self.fanart.artist_art, a.arid)
        if not art:
            return 0
        n = 0
        async with self.media.session() as db:
            await db.execute(delete(ArtistImage).where(ArtistImage.artist == a.name))
            for kind, images in (("thumb", artist_thumbs(art)), ("background", artist_backgrounds(art))):
                for img in images:
                    if not img.get("url"):
                        continue
                    db.add(ArtistImage(artist=a.name, kind=kind, url=img["url"], source="fanart",
                                       rank=int(img.get("likes") or 0)))
                    n += 1
            await db.commit()
        return n

    # -------- index --------
    async def index_artist(self, a: Artist) -> int:
        music = self.media.music
        popular = {t.casefold(): i + 1 for i, t in enumerate(await music._popular_titles(a.name))}
        singles = await music._single_titles(a.name)
        async with self.media.session() as db:
            genres = list((await db.execute(
                select(ArtistTag.tag).where(ArtistTag.artist == a.name).order_by(ArtistTag.count.desc())
            )).scalars().all())
        docs: Dict[str, FieldMap] = {}
        for r in await music.artist_releases(a):
            detail = await asyncio.to_thread(self.mb.release, r.reid)
            if not detail:
                continue
            recordings: Dict[Tuple[int, int], Dict[str, Any]] = {}
            for m in filtered_media(detail):
                for t in m.get("tracks") or []:
                    recordings[(int(m.get("position") or 1), int(t.get("position") or 0))] = t
            series = group_series(detail)
            group_type = secondary_type(detail.get("release-group") or {})

            tracks = await music.release_tracks(r)
            async with self.media.session() as db:
                for t in tracks:
                    mt = recordings.get((t.disc_num, t.track_num))
                    rec = (mt or {}).get("recording") or {}
                    if rec.get("id"):
                        credit = credit_artist(rec.get("artist-credit") or mt.get("artist-credit") or [])
                        t.rid = rec["id"]
                        t.track_artist = credit if credit and credit != a.name else ""
                        await db.execute(update(Track).where(Track.id == t.id).values(
                            rid=t.rid, track_artist=t.track_artist))
                    docs[t.key] = track_fields(a, r, t, rec, popular, singles, genres, series, group_type)
                await db.commit()
        await self.media.music_index.index(docs)
        return len(docs)

    # -------- pass --------
    async def watermark(self) -> Optional[datetime]:
        async with self.media.session() as db:
            return (await db.execute(select(func.max(Track.last_modified)))).scalar()

    async def sync_artist_metadata(self, name: str, resolve: bool = False) -> Optional[Artist]:
        a = await self.sync_artist(name)
        if a is None:
            return None
        await self.sync_releases(a)
        await self.assign_releases(a, resolve)
        await self.sync_popular(a)
        await self.sync_artwork(a)
        return a

    async def run(self, since: Optional[datetime] = None, artist: str = "", resolve: bool = False,
                  full: bool = False) -> Dict[str, int]:
        counts = {"artists": 0, "indexed": 0, "errors": 0}
        buckets = self.media.buckets(MEDIA_MUSIC)
        if not full and since is None:
            since = await self.watermark()
        if full:
            since = None

        touched: Set[str] = set()
        for bucket in buckets:
            touched |= await self.sync_bucket(bucket, since, artist)
        if resolve:
            async with self.media.session() as db:
                stmt = select(Track.artist).distinct()
                if artist:
                    stmt = stmt.where(Track.artist == artist)
                touched |= set((await db.execute(stmt)).scalars().all())

        artists: List[Artist] = []
        for name in sorted(touched):
            try:
                a = await self.sync_artist_metadata(name, resolve)
            except Exception as e:
                log.warning("music artist %s: %s", name, e)
                counts["errors"] += 1
                continue
            if a is not None:
                artists.append(a)
        # similar needs every artist resolved first
        for a in artists:
            try:
                await self.sync_similar(a)
                counts["indexed"] += await self.index_artist(a)
                counts["artists"] += 1
            except Exception as e:
                log.warning("music index %s: %s", a.name, e)
                counts["errors"] += 1
        await self.media.music.create_stations()
        log.info("music sync %s: %s", self.media.name, counts)
        return counts

    async def _all_artists(self) -> List[Artist]:
        async with self.media.session() as db:
            return list((await db.execute(select(Artist).where(Artist.arid != ""))).scalars().all())

    async def run_popular(self) -> int:
        n = 0
        for a in await self._all_artists():
            n += await self.sync_popular(a)
        return n

    async def run_similar(self) -> int:
        n = 0
        for a in await self._all_artists():
            n += await self.sync_similar(a)
        return n


def track_fields(a: Artist, r: Release, t: Track, recording: Dict[str, Any], popular: Dict[str, int],
                 singles: Set[str], genres: List[str], series: List[str], group_type: str) -> FieldMap:
    fields: FieldMap = {}
    add_field(fields, "artist", a.name)
    if t.track_artist:
        add_field(fields, "artist", t.track_artist)
    add_field(fields, "release", r.name)
    add_field(fields, "title", t.title)
    add_field(fields, "track", t.track_num)
    add_field(fields, "disc", t.disc_num)
    if r.release_date:
        add_field(fields, "date", r.release_date)
    if r.date:
        add_field(fields, "first_date", r.date)
    add_field(fields, "status", r.status)
    for g in genres:
        add_field(fields, "genre", g)
    for s in series:
        add_field(fields, "series", s)
    if r.type:
        add_field(fields, "type", r.type.lower())
    if group_type:
        add_field(fields, "type", group_type.lower())
    title = t.title.casefold()
    if title in singles:
        add_field(fields, "type", "single")
    rank = popular.get(title)
    if rank:
        add_field(fields, "type", "popular")
        add_field(fields, "popularity", rank)
    for ptype in performance_types(recording):
        add_field(fields, "type", ptype)
    for field, name in relation_credits(recording):
        add_field(fields, field, name)
    return fields


# =======================
# Images
# =======================

async def sync_covers(media: Media, mb: Optional[MusicBrainz] = None,
                      writer: Optional[ImageCache] = None) -> int:
    """Detect release-group artwork where a release has none, then warm cover art."""
    mb = mb or MusicBrainz(Getter(min_interval=1.0))
    writer = writer or image_writer()
    async with media.session() as db:
        reids = select(Track.reid).where(Track.reid != "").distinct()
        releases = (await db.execute(select(Release).where(Release.reid.in_(reids)))).scalars().all()
    urls = []
    for r in releases:
        if not (r.artwork and r.front_artwork) and not r.group_artwork:
            art = await asyncio.to_thread(mb.cover_art, r.reid, r.rgid)
            if art and art.get("from_group") and art.get("images"):
                r.group_artwork = True
                async with media.session() as db:
                    await db.execute(update(Release).where(Release.id == r.id).values(group_artwork=True))
                    await db.execute(update(Track).where(Track.reid == r.reid).values(group_artwork=True))
                    await db.commit()
        path = cover(r)
        if path:
            urls.append(upstream_url(path))
    n = await warm_images(writer, urls)
    log.info("music covers %s: %d cached", media.name, n)
    return n


async def sync_fanart(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    async with media.session() as db:
        urls = (await db.execute(select(ArtistImage.url))).scalars().all()
    n = await warm_images(writer, urls)
    log.info("music fanart %s: %d cached", media.name, n)
    return n
