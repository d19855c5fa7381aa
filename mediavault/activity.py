# mediavault/activity.py
"""Per-user listening and watching history.

Events live in the main database keyed by user name; the catalogue rows they
refer to live in the user's media database and are joined in Python.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete, func, select

from .database import get_sessionmaker
from .dates import (
    DAY_ZERO, DateRange, end_of_day, end_of_month, end_of_year, fill_day_gaps, fill_month_gaps,
    is_zero, localize, previous_month, start_of_day, start_of_month, start_of_year, ymd,
)
from .config import settings
from .media import Media
from .media_models import Movie, Release, Track
from .models import EpisodeEvent, EventKind, MovieEvent, TrackEvent

log = logging.getLogger("activity")

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
CHART_DAYS = 62


# =======================
# Incoming events
# =======================

class _EventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    date: datetime = Field(validation_alias=AliasChoices("date", "Date"))


class TrackEventIn(_EventIn):
    rid: str = Field(default="", validation_alias=AliasChoices("rid", "RID"))
    rgid: str = Field(default="", validation_alias=AliasChoices("rgid", "RGID"))
    etag: str = Field(default="", validation_alias=AliasChoices("etag", "ETag"))


class MovieEventIn(_EventIn):
    tmid: str = Field(default="", validation_alias=AliasChoices("tmid", "TMID"))
    imid: str = Field(default="", validation_alias=AliasChoices("imid", "IMID"))
    etag: str = Field(default="", validation_alias=AliasChoices("etag", "ETag"))


class EpisodeEventIn(_EventIn):
    eid: str = Field(default="", validation_alias=AliasChoices("eid", "EID"))


@dataclass
class Events:
    tracks: List[TrackEventIn]
    movies: List[MovieEventIn]
    episodes: List[EpisodeEventIn]

    def __len__(self) -> int:
        return len(self.tracks) + len(self.movies) + len(self.episodes)


_KINDS = {
    EventKind.track.value: ("tracks", TrackEventIn),
    EventKind.movie.value: ("movies", MovieEventIn),
    EventKind.episode.value: ("episodes", EpisodeEventIn),
}

_GROUPS = {"TrackEvents": EventKind.track.value, "MovieEvents": EventKind.movie.value,
           "EpisodeEvents": EventKind.episode.value}


def parse_events(payload: Any) -> Events:
    """Accepts [{"kind": ..., ...}] or {"TrackEvents": [...], ...}; malformed events are dropped."""
    events = Events(tracks=[], movies=[], episodes=[])
    items: List[Tuple[str, Any]] = []
    if isinstance(payload, list):
        items = [(str(e.get("kind", "")), e) for e in payload if isinstance(e, dict)]
    elif isinstance(payload, dict):
        for group, kind in _GROUPS.items():
            items.extend((kind, e) for e in payload.get(group) or [] if isinstance(e, dict))
    for kind, raw in items:
        target = _KINDS.get(kind.lower())
        if target is None:
            continue
        name, model = target
        try:
            getattr(events, name).append(model.model_validate(raw))
        except ValidationError as e:
            log.debug("dropped %s event: %s", kind, e)
    return events


# =======================
# Resolved views
# =======================

@dataclass
class ActivityTrack:
    date: datetime
    track: Track
    count: int = 1


@dataclass
class ActivityMovie:
    date: datetime
    movie: Movie
    count: int = 1


@dataclass
class ActivityRelease:
    date: datetime
    release: Release
    count: int = 1


@dataclass
class ActivityArtist:
    name: str
    count: int


@dataclass
class ActivityEpisode:
    date: datetime
    episode: Any


def previous_range(dr: DateRange) -> DateRange:
    """The same-sized window just before `dr` (year, week, month or day).

    Nothing precedes the first year of the calendar; such windows get an empty range.
    """
    days = dr.day_count()
    if dr.start.year == DAY_ZERO.year or dr.start - DAY_ZERO < timedelta(days=days):
        return DateRange(DAY_ZERO, DAY_ZERO)
    if dr.is_year():
        y = datetime(dr.start.year - 1, 1, 1)
        return DateRange(start_of_year(y), end_of_year(y))
    if dr.is_month():
        m = previous_month(dr.start)
        return DateRange(start_of_month(m), end_of_month(m))
    start = dr.start - timedelta(days=days)
    return DateRange(start_of_day(start), end_of_day(start + timedelta(days=days - 1)))


def is_week(dr: DateRange) -> bool:
    return dr.start.weekday() == 0 and dr.day_count() == 7


class Activity:
    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url

    def _session(self):
        return get_sessionmaker(self.db_url)()

    async def _all(self, stmt) -> list:
        async with self._session() as db:
            return list((await db.execute(stmt)).scalars().all())

    # -------- ingest --------
    async def create_events(self, user: str, media: Media, events: Events) -> Dict[str, int]:
        """Store events for `user`; ETags are resolved to catalogue ids, unresolvable events dropped."""
        counts = {"tracks": 0, "movies": 0, "episodes": 0, "dropped": 0}
        rows: List[Any] = []
        for e in events.tracks:
            rid, rgid = e.rid, e.rgid
            if e.etag:
                t = await media.music.lookup_etag(e.etag)
                if t is not None:
                    rid, rgid = t.rid, t.rgid
            if not rid:
                counts["dropped"] += 1
                continue
            rows.append(TrackEvent(user=user, date=localize(e.date), rid=rid, rgid=rgid, etag=e.etag))
            counts["tracks"] += 1
        for e in events.movies:
            tmid, imid = e.tmid, e.imid
            if e.etag:
                m = await media.film.lookup_etag(e.etag)
                if m is not None:
                    tmid, imid = str(m.tmid), m.imid
            if not tmid and not imid:
                counts["dropped"] += 1
                continue
            rows.append(MovieEvent(user=user, date=localize(e.date), tmid=tmid, imid=imid, etag=e.etag))
            counts["movies"] += 1
        for e in events.episodes:
            if not e.eid:
                counts["dropped"] += 1
                continue
            rows.append(EpisodeEvent(user=user, date=localize(e.date), eid=e.eid))
            counts["episodes"] += 1
        if rows:
            async with self._session() as db:
                db.add_all(rows)
                await db.commit()
        log.debug("%s events: %s", user, counts)
        return counts

    async def delete_user_events(self, user: str) -> None:
        async with self._session() as db:
            for model in (TrackEvent, MovieEvent, EpisodeEvent):
                await db.execute(delete(model).where(model.user == user))
            await db.commit()

    # -------- raw queries --------
    def _window(self, model, user: str, dr: DateRange):
        return select(model).where(model.user == user, model.date >= dr.start, model.date <= dr.end)

    async def track_events(self, user: str, dr: DateRange, limit: Optional[int] = None) -> List[TrackEvent]:
        stmt = self._window(TrackEvent, user, dr).order_by(TrackEvent.date.desc())
        return await self._all(stmt.limit(limit or settings.ACTIVITY_LIMIT))

    async def movie_events(self, user: str, dr: DateRange, limit: Optional[int] = None) -> List[MovieEvent]:
        stmt = self._window(MovieEvent, user, dr).order_by(MovieEvent.date.desc())
        return await self._all(stmt.limit(limit or settings.ACTIVITY_LIMIT))

    async def episode_events(self, user: str, dr: DateRange, limit: Optional[int] = None) -> List[EpisodeEvent]:
        stmt = self._window(EpisodeEvent, user, dr).order_by(EpisodeEvent.date.desc())
        return await self._all(stmt.limit(limit or settings.ACTIVITY_LIMIT))

    async def _grouped(self, column, date_column, user_column, user: str, dr: DateRange,
                       limit: int) -> List[Tuple[str, int, datetime]]:
        """(key, count, last date) ordered by count desc, then last date desc."""
        count = func.count(column)
        last = func.max(date_column)
        stmt = (select(column, count, last)
                .where(user_column == user, date_column >= dr.start, date_column <= dr.end, column != "")
                .group_by(column).order_by(count.desc(), last.desc()).limit(limit))
        async with self._session() as db:
            return [(k, n, d) for k, n, d in (await db.execute(stmt)).all()]

    # -------- tracks --------
    async def _resolve_tracks(self, media: Media, rows: List[Tuple[str, int, datetime]]) -> List[ActivityTrack]:
        by_rid = await media.music.tracks_for_rids([rid for rid, _, _ in rows])
        return [ActivityTrack(date=d, track=by_rid[rid], count=n) for rid, n, d in rows if rid in by_rid]

    async def tracks(self, user: str, media: Media, dr: DateRange) -> List[ActivityTrack]:
        events = await self.track_events(user, dr)
        return await self._resolve_tracks(media, [(e.rid, 1, e.date) for e in events])

    async def recent_tracks(self, user: str, media: Media) -> List[ActivityTrack]:
        stmt = select(TrackEvent).where(TrackEvent.user == user).order_by(TrackEvent.date.desc())
        events = await self._all(stmt.limit(settings.ACTIVITY_RECENT_LIMIT))
        return await self._resolve_tracks(media, [(e.rid, 1, e.date) for e in events])

    async def popular_tracks(self, user: str, media: Media, dr: DateRange) -> List[ActivityTrack]:
        rows = await self._grouped(TrackEvent.rid, TrackEvent.date, TrackEvent.user, user, dr,
                                   settings.ACTIVITY_POPULAR_LIMIT)
        return await self._resolve_tracks(media, rows)

    async def popular_artists(self, user: str, media: Media, dr: DateRange) -> List[ActivityArtist]:
        rows = await self._grouped(TrackEvent.rid, TrackEvent.date, TrackEvent.user, user, dr, 10 * settings.ACTIVITY_POPULAR_LIMIT)
        counts: Counter = Counter()
        for t in await self._resolve_tracks(media, rows):
            counts[t.track.artist] += t.count
        return [ActivityArtist(name=name, count=n) for name, n in counts.most_common(settings.ACTIVITY_POPULAR_LIMIT)]

    # -------- releases --------
    async def popular_releases(self, user: str, media: Media, dr: DateRange) -> List[ActivityRelease]:
        rows = await self._grouped(TrackEvent.rgid, TrackEvent.date, TrackEvent.user, user, dr,
                                   settings.ACTIVITY_POPULAR_LIMIT)
        return await self._resolve_releases(media, rows)

    async def releases(self, user: str, media: Media, dr: DateRange) -> List[ActivityRelease]:
        """Releases in the window, most recently played first."""
        events = await self.track_events(user, dr, 10 * settings.ACTIVITY_LIMIT)
        seen: Dict[str, Tuple[str, int, datetime]] = {}
        for e in events:
            if e.rgid and e.rgid not in seen:
                seen[e.rgid] = (e.rgid, 1, e.date)
        return await self._resolve_releases(media, list(seen.values())[:settings.ACTIVITY_LIMIT])

    async def _resolve_releases(self, media: Media, rows) -> List[ActivityRelease]:
        if not rows:
            return []
        async with media.session() as db:
            releases = (await db.execute(
                select(Release).where(Release.rgid.in_([k for k, _, _ in rows])))).scalars().all()
            # a group has several releases; prefer one that has local tracks
            local = set((await db.execute(select(Track.reid).distinct())).scalars().all())
        by_rgid: Dict[str, Release] = {}
        for r in releases:
            if r.rgid not in by_rgid or (r.reid in local and by_rgid[r.rgid].reid not in local):
                by_rgid[r.rgid] = r
        return [ActivityRelease(date=d, release=by_rgid[k], count=n) for k, n, d in rows if k in by_rgid]

    # -------- movies --------
    async def _resolve_movies(self, media: Media, rows) -> List[ActivityMovie]:
        tmids = [int(k) for k, _, _ in rows if str(k).isdigit()]
        by_tmid = await media.film.movies_for_tmids(tmids)
        out = []
        for k, n, d in rows:
            m = by_tmid.get(int(k)) if str(k).isdigit() else None
            if m is not None:
                out.append(ActivityMovie(date=d, movie=m, count=n))
        return out

    async def movies(self, user: str, media: Media, dr: DateRange) -> List[ActivityMovie]:
        events = await self.movie_events(user, dr)
        return await self._resolve_movies(media, [(e.tmid, 1, e.date) for e in events])

    async def popular_movies(self, user: str, media: Media, dr: DateRange) -> List[ActivityMovie]:
        rows = await self._grouped(MovieEvent.tmid, MovieEvent.date, MovieEvent.user, user, dr,
                                   settings.ACTIVITY_POPULAR_LIMIT)
        return await self._resolve_movies(media, rows)

    # -------- episodes --------
    async def episodes(self, user: str, media: Media, dr: DateRange) -> List[ActivityEpisode]:
        events = await self.episode_events(user, dr)
        found = {e.eid: e for e in await media.podcast.episodes_for_eids([e.eid for e in events])}
        return [ActivityEpisode(date=e.date, episode=found[e.eid]) for e in events if e.eid in found]

    # -------- counts and charts --------
    async def _track_dates(self, user: str, dr: DateRange) -> List[datetime]:
        stmt = select(TrackEvent.date).where(
            TrackEvent.user == user, TrackEvent.date >= dr.start, TrackEvent.date <= dr.end)
        return await self._all(stmt)

    async def track_day_counts(self, user: str, dr: DateRange) -> List[Tuple[datetime, int]]:
        dates = await self._track_dates(user, dr)
        return fill_day_gaps(dr.start, dr.end, [(d, 1) for d in dates])

    async def track_month_counts(self, user: str, dr: DateRange) -> List[Tuple[datetime, int]]:
        dates = await self._track_dates(user, dr)
        return fill_month_gaps(dr.start, dr.end, [(d, 1) for d in dates])

    async def track_stats(self, user: str, media: Media, dr: DateRange) -> Dict[str, Any]:
        return {
            "interval": {"start": ymd(dr.start), "end": ymd(dr.end)},
            "artists": await self.popular_artists(user, media, dr),
            "releases": await self.popular_releases(user, media, dr),
            "tracks": await self.popular_tracks(user, media, dr),
        }

    async def first_track_date(self, user: str) -> Optional[datetime]:
        async with self._session() as db:
            return (await db.execute(
                select(func.min(TrackEvent.date)).where(TrackEvent.user == user))).scalar()

    async def listened_range(self, user: str, dr: DateRange) -> DateRange:
        """An open-ended window ("all") starts at the month of the first listen."""
        if not is_zero(dr.start):
            return dr
        first = await self.first_track_date(user)
        return DateRange(start_of_month(first or dr.end), dr.end)

    async def chart(self, user: str, dr: DateRange) -> Dict[str, Any]:
        """Listens in `dr` next to the window before it.

        Windows longer than CHART_DAYS chart one series by month; other
        custom windows chart one series by day.
        """
        if dr.is_year():
            labels = list(MONTHS)
            counts = self.track_month_counts
        elif dr.is_day():
            labels = ["Listens"]
            counts = self.track_day_counts
        elif is_week(dr):
            labels = list(WEEKDAYS)
            counts = self.track_day_counts
        elif dr.is_month():
            labels = [f"{i:02d}" for i in range(1, 32)]
            counts = self.track_day_counts
        elif is_zero(dr.start) or dr.day_count() > CHART_DAYS:
            rows = await self.track_month_counts(user, await self.listened_range(user, dr))
            return {"labels": [f"{MONTHS[d.month - 1]} {d.year}" for d, _ in rows],
                    "datasets": [{"label": "Listens", "data": [n for _, n in rows]}]}
        else:
            rows = await self.track_day_counts(user, dr)
            return {"labels": [f"{MONTHS[d.month - 1]} {d.day}" for d, _ in rows],
                    "datasets": [{"label": "Listens", "data": [n for _, n in rows]}]}

        prev = previous_range(dr)
        if dr.is_year():
            names = (str(prev.start.year), str(dr.start.year))
        elif dr.is_day():
            names = (prev.start.strftime("%A"), dr.start.strftime("%A"))
        elif is_week(dr):
            names = tuple(f"{MONTHS[r.start.month - 1]} {r.start.day} - {MONTHS[r.end.month - 1]} {r.end.day}"
                          for r in (prev, dr))
        else:
            names = tuple(f"{MONTHS[r.start.month - 1]} {r.start.year}" for r in (prev, dr))

        datasets = []
        for name, r in zip(names, (prev, dr)):
            data = [] if is_zero(r.end) else [n for _, n in await counts(user, r)]
            datasets.append({"label": name, "data": data})
        return {"labels": labels, "datasets": datasets}
