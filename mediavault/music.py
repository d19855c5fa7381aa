# mediavault/music.py
"""Music catalogue queries, radio algorithms, stations and user playlists."""
from __future__ import annotations

import json
import logging
import random
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, TYPE_CHECKING
from urllib.parse import quote_plus

from sqlalchemy import delete, func, or_, select, update

from .config import settings
from .errors import NotFound
from .media_models import (
    ActivePlaylist, Artist, ArtistImage, Playlist, Popular, Release, ReleaseMedia,
    Similar, Station, StationType, Track,
)
from .musicbrainz import PRIMARY_SINGLE, VARIOUS_ARTISTS
from .utils import sort_title, utcnow

if TYPE_CHECKING:
    from .media import Media

log = logging.getLogger("music")

# owner of the stations built from the music config
SHARED_USER = "_shared"

DECADES = range(1960, 2030, 10)


def station_ref(query: str) -> str:
    return f"/music/search?q={quote_plus(query)}&radio=1"


def cover(r, size: str = "250") -> str:
    """Local image path for a Release or a Track; empty when there is no artwork."""
    if getattr(r, "group_artwork", False) and r.rgid:
        return f"/img/mb/rg/{r.rgid}/front-{size}"
    if getattr(r, "artwork", False) and getattr(r, "front_artwork", False) and r.reid:
        return f"/img/mb/re/{r.reid}/front-{size}"
    other = getattr(r, "other_artwork", "")
    if getattr(r, "artwork", False) and other and r.reid:
        return f"/img/mb/re/{r.reid}/{other}-{size}"
    return ""


def track_location(t: Track) -> str:
    return f"/api/tracks/{t.uuid}/location"


def fanart_path(arid: str, url: str, kind: str) -> str:
    """/img/fa/<arid>/t/<file> for thumbs, .../b/<file> for backgrounds."""
    if not url:
        return ""
    return f"/img/fa/{arid}/{'b' if kind == 'background' else 't'}/{url.rsplit('/', 1)[-1]}"


def _casefold_set(values: Iterable[str]) -> Set[str]:
    return {v.casefold() for v in values if v}


def _first_by_title(tracks: Iterable[Track], limit: int = 0) -> List[Track]:
    seen: Set[str] = set()
    out: List[Track] = []
    for t in tracks:
        k = t.title.casefold()
        if k in seen:
            continue
        seen.add(k)
        out.append(t)
        if limit and len(out) >= limit:
            break
    return out


def _release_order(t: Track):
    return (t.release_date or datetime.max, t.date, t.disc_num, t.track_num)


class Music:
    def __init__(self, media: "Media"):
        self.media = media
        self.config = media.config.music

    async def _all(self, stmt) -> list:
        async with self.media.session() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def _first(self, stmt):
        async with self.media.session() as db:
            return (await db.execute(stmt)).scalars().first()

    # =======================
    # Artists
    # =======================

    async def artists(self) -> List[Artist]:
        names = select(Track.artist).distinct()
        return await self._all(select(Artist).where(Artist.name.in_(names)).order_by(Artist.sort_name))

    async def artist(self, id: int) -> Artist:
        a = await self._first(select(Artist).where(Artist.id == id))
        if a is None:
            raise NotFound("artist-not-found")
        return a

    async def artist_by_name(self, name: str) -> Optional[Artist]:
        return await self._first(select(Artist).where(Artist.name == name))

    async def artist_by_arid(self, arid: str) -> Optional[Artist]:
        return await self._first(select(Artist).where(Artist.arid == arid))

    async def find_artist(self, id: str) -> Artist:
        """By numeric id or MusicBrainz artist id."""
        if id.isdigit():
            return await self.artist(int(id))
        a = await self.artist_by_arid(id)
        if a is None:
            raise NotFound("artist-not-found")
        return a

    async def artist_image(self, a: Artist, kind: str = "thumb") -> str:
        img = await self._first(
            select(ArtistImage).where(ArtistImage.artist == a.name, ArtistImage.kind == kind)
            .order_by(ArtistImage.rank.desc()))
        return fanart_path(a.arid, img.url, kind) if img else ""

    async def artist_background(self, a: Artist) -> str:
        return await self.artist_image(a, "background")

    async def similar_artists(self, a: Artist, limit: Optional[int] = None) -> List[Artist]:
        limit = limit or self.config.similar_artists_limit
        async with self.media.session() as db:
            rows = (await db.execute(
                select(Artist).join(Similar, Similar.arid == Artist.arid)
                .where(Similar.artist == a.name)
                .order_by(Similar.rank).limit(limit))).scalars().all()
        if rows:
            return list(rows)
        return await self.related_artists(a, limit)

    async def related_artists(self, a: Artist, limit: int) -> List[Artist]:
        """Same genre and a nearby begin date; used when there are no similar rows."""
        if not a.genre:
            return []
        stmt = select(Artist).where(Artist.genre == a.genre, Artist.name != a.name)
        if a.date:
            days = timedelta(days=self.config.related_artists_days)
            stmt = stmt.where(Artist.date.between(a.date - days, a.date + days))
        rows = await self._all(stmt.where(Artist.name.in_(select(Track.artist).distinct())))
        random.shuffle(rows)
        return rows[:limit]

    # =======================
    # Releases
    # =======================

    async def release(self, id: int) -> Release:
        r = await self._first(select(Release).where(Release.id == id))
        if r is None:
            raise NotFound("release-not-found")
        return r

    async def find_release(self, id: str) -> Release:
        if id.isdigit():
            return await self.release(int(id))
        r = await self._first(select(Release).where(or_(Release.reid == id, Release.rgid == id)))
        if r is None:
            raise NotFound("release-not-found")
        return r

    async def artist_releases(self, a: Artist) -> List[Release]:
        """Releases with at least one local track."""
        reids = select(Track.reid).where(Track.artist == a.name).distinct()
        return await self._all(
            select(Release).where(Release.artist == a.name, Release.reid.in_(reids)).order_by(Release.date))

    async def all_artist_releases(self, name: str) -> List[Release]:
        return await self._all(select(Release).where(Release.artist == name))

    async def release_media(self, reid: str) -> List[ReleaseMedia]:
        return await self._all(select(ReleaseMedia).where(ReleaseMedia.reid == reid).order_by(ReleaseMedia.position))

    async def recently_added(self, limit: Optional[int] = None) -> List[Release]:
        limit = limit or self.config.recent_limit
        async with self.media.session() as db:
            reids = (await db.execute(
                select(Track.reid, func.max(Track.last_modified).label("added"))
                .where(Track.reid != "").group_by(Track.reid)
                .order_by(func.max(Track.last_modified).desc()).limit(limit))).all()
            order = [r[0] for r in reids]
            rows = (await db.execute(select(Release).where(Release.reid.in_(order)))).scalars().all()
        by_reid = {r.reid: r for r in rows}
        return [by_reid[r] for r in order if r in by_reid]

    async def recently_released(self, limit: Optional[int] = None) -> List[Release]:
        limit = limit or self.config.recent_limit
        since = datetime.now() - timedelta(days=self.config.recent_days)
        reids = select(Track.reid).where(Track.reid != "").distinct()
        return await self._all(
            select(Release).where(Release.reid.in_(reids), Release.release_date >= since)
            .order_by(Release.release_date.desc()).limit(limit))

    async def similar_releases(self, a: Artist, r: Release) -> List[Release]:
        similar = await self.similar_artists(a)
        if not similar or not r.date:
            return []
        days = timedelta(days=self.config.similar_releases_days)
        reids = select(Track.reid).where(Track.reid != "").distinct()
        return await self._all(
            select(Release).where(
                Release.artist.in_([s.name for s in similar]),
                Release.reid.in_(reids),
                Release.date.between(r.date - days, r.date + days),
            ).order_by(Release.date).limit(self.config.similar_releases_limit))

    # =======================
    # Tracks
    # =======================

    async def track(self, id: int) -> Track:
        t = await self._first(select(Track).where(Track.id == id))
        if t is None:
            raise NotFound("track-not-found")
        return t

    async def find_track(self, id: str) -> Track:
        """Numeric id, "uuid:<uuid>" or "rid:<recording id>"."""
        if id.isdigit():
            return await self.track(int(id))
        if id.startswith("uuid:"):
            return await self.lookup_uuid(id[5:])
        if id.startswith("rid:"):
            t = await self._first(select(Track).where(Track.rid == id[4:]))
            if t is None:
                raise NotFound("track-not-found")
            return t
        raise NotFound("track-not-found")

    async def lookup_uuid(self, uuid: str) -> Track:
        t = await self._first(select(Track).where(Track.uuid == uuid))
        if t is None:
            raise NotFound("track-not-found")
        return t

    async def lookup_etag(self, etag: str) -> Optional[Track]:
        return await self._first(select(Track).where(Track.etag == etag))

    async def tracks_for_keys(self, keys: Sequence[str]) -> List[Track]:
        if not keys:
            return []
        rows = await self._all(select(Track).where(Track.key.in_(list(keys))))
        by_key = {t.key: t for t in rows}
        return [by_key[k] for k in keys if k in by_key]

    async def tracks_for_rids(self, rids: Sequence[str]) -> Dict[str, Track]:
        if not rids:
            return {}
        rows = await self._all(select(Track).where(Track.rid.in_(list(rids))))
        out: Dict[str, Track] = {}
        for t in rows:
            out.setdefault(t.rid, t)
        return out

    async def release_tracks(self, r: Release) -> List[Track]:
        return await self._all(
            select(Track).where(Track.artist == r.artist, Track.reid == r.reid)
            .order_by(Track.disc_num, Track.track_num))

    async def artist_tracks(self, a: Artist) -> List[Track]:
        rows = await self._all(select(Track).where(Track.artist == a.name))
        return sorted(rows, key=_release_order)

    async def _popular_titles(self, artist: str) -> List[str]:
        return await self._all(select(Popular.title).where(Popular.artist == artist).order_by(Popular.rank))

    async def _single_titles(self, artist: str) -> Set[str]:
        rows = await self._all(
            select(Release.single_name).where(Release.artist == artist, Release.type == PRIMARY_SINGLE))
        return _casefold_set(rows)

    async def artist_popular_tracks(self, a: Artist, limit: Optional[int] = None) -> List[Track]:
        limit = limit or self.config.popular_limit
        titles = await self._popular_titles(a.name)
        tracks = sorted(await self.artist_tracks(a), key=_release_order)
        by_title: Dict[str, Track] = {}
        for t in tracks:
            by_title.setdefault(t.title.casefold(), t)
        out = [by_title[p.casefold()] for p in titles if p.casefold() in by_title]
        return _first_by_title(out, limit)

    async def artist_singles(self, a: Artist, limit: Optional[int] = None) -> List[Track]:
        limit = limit or self.config.singles_limit
        singles = await self._single_titles(a.name)
        tracks = [t for t in await self.artist_tracks(a) if t.title.casefold() in singles]
        return _first_by_title(tracks, limit)

    async def artist_deep(self, a: Artist, limit: Optional[int] = None) -> List[Track]:
        """Tracks that are neither popular nor singles."""
        limit = limit or self.config.deep_limit
        skip = _casefold_set(await self._popular_titles(a.name)) | await self._single_titles(a.name)
        tracks = [t for t in await self.artist_tracks(a) if t.title.casefold() not in skip]
        tracks = _first_by_title(tracks)
        random.shuffle(tracks)
        return tracks[:limit]

    async def release_singles(self, r: Release) -> List[Track]:
        singles = await self._single_titles(r.artist)
        return [t for t in await self.release_tracks(r) if t.title.casefold() in singles]

    async def release_popular(self, r: Release) -> List[Track]:
        popular = _casefold_set(await self._popular_titles(r.artist))
        return [t for t in await self.release_tracks(r) if t.title.casefold() in popular]

    async def _popular_or_singles(self, a: Artist, limit: int) -> List[Track]:
        tracks = await self.artist_popular_tracks(a, limit)
        if not tracks:
            tracks = await self.artist_singles(a, limit)
        return tracks

    # =======================
    # Radio
    # =======================

    async def artist_similar(self, a: Artist, depth: int, breadth: int, include_artist: bool = True) -> List[Track]:
        """Up to `depth` top tracks from the artist and from each of `breadth` similar artists."""
        tracks: List[Track] = []
        if include_artist:
            tracks.extend(await self._popular_or_singles(a, depth))
        for s in await self.similar_artists(a, breadth):
            tracks.extend(await self._popular_or_singles(s, depth))
        random.shuffle(tracks)
        return tracks

    async def artist_radio(self, a: Artist) -> List[Track]:
        tracks = await self.artist_similar(a, self.config.artist_radio_depth, self.config.artist_radio_breadth)
        return tracks[:self.config.radio_limit]

    async def artist_shuffle(self, a: Artist, limit: Optional[int] = None) -> List[Track]:
        """Mostly popular tracks padded with random others by the artist."""
        limit = limit or self.config.radio_limit
        popular = await self.artist_popular_tracks(a)
        random.shuffle(popular)
        picked = popular[:int(limit * 0.75)]
        seen = {t.title.casefold() for t in picked}
        rest = _first_by_title(await self.artist_tracks(a))
        random.shuffle(rest)
        for t in rest:
            if len(picked) >= limit:
                break
            if t.title.casefold() not in seen:
                seen.add(t.title.casefold())
                picked.append(t)
        random.shuffle(picked)
        return picked

    async def track_radio(self, t: Track) -> List[Track]:
        """The seed track first, then tracks from its artist and similar artists."""
        a = await self.artist_by_name(t.artist)
        others: List[Track] = []
        if a is not None:
            others = await self.artist_similar(a, self.config.track_radio_depth, self.config.track_radio_breadth)
        tracks = [t] + [o for o in others if o.id != t.id]
        return tracks[:self.config.radio_limit]

    async def search(self, q: str, limit: Optional[int] = None) -> List[Track]:
        keys = await self.media.music_index.search(q, limit or self.config.search_limit)
        return await self.tracks_for_keys(keys)

    async def query(self, q: str, user: str) -> Dict[str, list]:
        """Name matches used by the search view."""
        like = f"%{q}%"
        names = select(Track.artist).distinct()
        reids = select(Track.reid).distinct()
        return {
            "artists": await self._all(
                select(Artist).where(Artist.name.ilike(like), Artist.name.in_(names)).order_by(Artist.sort_name)),
            "releases": await self._all(
                select(Release).where(Release.name.ilike(like), Release.reid.in_(reids)).order_by(Release.sort_name)),
            "stations": await self._all(
                self._visible_stations(user).where(
                    or_(Station.name.ilike(like), Station.creator.ilike(like))).order_by(Station.sort_name)),
            "tracks": await self._all(
                select(Track).where(Track.title.ilike(like)).order_by(Track.title).limit(self.config.search_limit)),
        }

    async def counts(self) -> Dict[str, int]:
        async with self.media.session() as db:
            tracks = (await db.execute(select(func.count(Track.id)))).scalar() or 0
            artists = (await db.execute(select(func.count(func.distinct(Track.artist))))).scalar() or 0
            releases = (await db.execute(select(func.count(func.distinct(Track.reid))))).scalar() or 0
        return {"tracks": tracks, "artists": artists, "releases": releases}

    # =======================
    # Stations
    # =======================

    def _visible_stations(self, user: str):
        return select(Station).where(or_(Station.shared.is_(True), Station.user == user))

    async def stations(self, user: str) -> List[Station]:
        return await self._all(self._visible_stations(user).order_by(Station.type, Station.sort_name))

    async def station(self, id: int) -> Station:
        s = await self._first(select(Station).where(Station.id == id))
        if s is None:
            raise NotFound("station-not-found")
        return s

    async def lookup_station(self, user: str, id: str) -> Station:
        """By numeric id, else by "name:<name>" or a bare name; only visible stations."""
        if id.isdigit():
            s = await self.station(int(id))
        else:
            name = id[5:] if id.startswith("name:") else id
            s = await self._first(self._visible_stations(user).where(Station.name.ilike(name)))
            if s is None:
                raise NotFound("station-not-found")
        if not (s.shared or s.user == user):
            raise NotFound("station-not-found")
        return s

    async def search_station(self, user: str, q: str) -> Optional[Station]:
        like = f"%{q}%"
        return await self._first(self._visible_stations(user).where(
            or_(Station.name.ilike(like), Station.creator.ilike(like))).order_by(Station.id))

    async def save_station_playlist(self, s: Station, playlist: str) -> None:
        async with self.media.session() as db:
            await db.execute(update(Station).where(Station.id == s.id).values(playlist=playlist))
            await db.commit()
        s.playlist = playlist

    async def _upsert_station(self, db, **values) -> None:
        existing = (await db.execute(select(Station).where(
            Station.user == values["user"], Station.name == values["name"]))).scalars().first()
        if existing is None:
            db.add(Station(sort_name=sort_title(values["name"]), **values))
        else:
            for k, v in values.items():
                setattr(existing, k, v)

    async def create_stations(self) -> None:
        """Shared stations from genres, decades, series, canned queries and streams."""
        c = self.config
        stations: List[Dict[str, object]] = []
        for g in c.radio_genres:
            q = f'+genre:"{g}" +type:single +popularity:<11 -artist:"{VARIOUS_ARTISTS}"'
            stations.append(dict(type=StationType.genre.value, name=g.title(), ref=station_ref(q)))
        for d in DECADES:
            q = (f'+first_date:>="{d}-01-01" +first_date:<="{d + 9}-12-31" '
                 f'+type:single +popularity:<11')
            stations.append(dict(type=StationType.period.value, name=f"{d}s Top Hits", ref=station_ref(q)))
        for s in c.radio_series:
            stations.append(dict(type=StationType.series.value, name=s, ref=station_ref(f'+series:"{s}"')))
        for name, q in c.radio_other.items():
            stations.append(dict(type=StationType.other.value, name=name, ref=station_ref(q)))
        for rs in c.radio_streams:
            sources = [{"contentType": src.contentType, "url": src.url} for src in rs.source]
            stations.append(dict(type=StationType.stream.value, name=rs.title, creator=rs.creator,
                                 image=rs.image, description=rs.description, ref=json.dumps(sources)))
        async with self.media.session() as db:
            for values in stations:
                values.setdefault("creator", settings.APP_NAME)
                await self._upsert_station(db, user=SHARED_USER, shared=True, **values)
            await db.commit()
        log.info("%s: %d shared stations", self.media.name, len(stations))

    async def create_station(self, user: str, type: str, name: str, ref: str,
                             shared: bool = False, creator: str = "", image: str = "") -> Station:
        s = Station(user=user, shared=shared, type=type, name=name, sort_name=sort_title(name),
                    creator=creator, image=image, ref=ref)
        async with self.media.session() as db:
            db.add(s)
            await db.commit()
        return s

    async def update_station(self, s: Station, name: str, ref: str, playlist: Optional[str]) -> None:
        async with self.media.session() as db:
            await db.execute(update(Station).where(Station.id == s.id).values(
                name=name, sort_name=sort_title(name), ref=ref, playlist=playlist))
            await db.commit()
        s.name, s.ref, s.playlist = name, ref, playlist

    async def delete_station(self, user: str, id: int) -> None:
        s = await self.station(id)
        if s.user != user:
            raise NotFound("station-not-found")
        async with self.media.session() as db:
            await db.execute(delete(Station).where(Station.id == s.id))
            await db.commit()

    # =======================
    # User playlists
    # =======================

    async def active_playlist(self, user: str) -> ActivePlaylist:
        """The user's active playlist row; created empty on first use."""
        async with self.media.session() as db:
            p = (await db.execute(select(ActivePlaylist).where(ActivePlaylist.user == user))).scalars().first()
            if p is None:
                p = ActivePlaylist(user=user, playlist="")
                db.add(p)
                await db.commit()
        return p

    async def save_active_playlist(self, user: str, playlist: str) -> None:
        await self.active_playlist(user)
        async with self.media.session() as db:
            await db.execute(update(ActivePlaylist).where(ActivePlaylist.user == user).values(playlist=playlist))
            await db.commit()

    async def playlists(self, user: str) -> List[Playlist]:
        return await self._all(select(Playlist).where(Playlist.user == user).order_by(Playlist.name))

    async def playlist(self, user: str, id: int) -> Playlist:
        p = await self._first(select(Playlist).where(Playlist.id == id, Playlist.user == user))
        if p is None:
            raise NotFound("playlist-not-found")
        return p

    async def lookup_playlist(self, user: str, id: str) -> Playlist:
        if id.isdigit():
            return await self.playlist(user, int(id))
        p = await self._first(select(Playlist).where(Playlist.user == user, Playlist.name.ilike(id)))
        if p is None:
            raise NotFound("playlist-not-found")
        return p

    async def create_playlist(self, user: str, name: str, playlist: str) -> Playlist:
        p = Playlist(user=user, name=name, playlist=playlist)
        async with self.media.session() as db:
            db.add(p)
            await db.commit()
        return p

    async def save_playlist(self, p: Playlist, name: str, playlist: str) -> None:
        now = utcnow()
        async with self.media.session() as db:
            await db.execute(update(Playlist).where(Playlist.id == p.id).values(name=name, playlist=playlist, updated_at=now))
            await db.commit()
        p.name, p.playlist, p.updated_at = name, playlist, now

    async def delete_playlist(self, user: str, id: int) -> None:
        p = await self.playlist(user, id)
        async with self.media.session() as db:
            await db.execute(delete(Playlist).where(Playlist.id == p.id))
            await db.commit()
