# mediavault/tv_sync.py
"""TV ingestion: one TMDB series sync per series per pass, episode detail per file."""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import delete, select

from .bucket import BucketObject
from .client import Getter
from .config import MEDIA_TV
from .dates import parse_date
from .errors import InvalidEpisode, ReleaseTypeNotFound
from .film import BACKDROP_SIZE, POSTER_SIZE
from .film_sync import warm_images, ensure_people
from .images import ImageCache, image_writer
from .media import Media
from .media_models import (
    TVEpisode, TVEpisodeCast, TVEpisodeCrew, TVSeries, TVSeriesCast, TVSeriesCrew,
    TVSeriesGenre, TVSeriesKeyword,
)
from .search import FieldMap, add_field
from .tmdb import TMDB, crew_with_jobs, img_url, sorted_cast
from .tv import STILL_SIZE
from .utils import fuzzy_name, sort_title

log = logging.getLogger("sync")

TV_RE = re.compile(r".*/(.+?)\s*\(([\d]+)\)\s+[^\d]*(S\d\dE\d\d)[^\d]*?(?:\s-\s(.+))?\.(mkv|mp4)$")


def parse_episode_path(path: str) -> Optional[Tuple[str, str, int, int]]:
    """(series, year, season, episode); S00 or E00 raises InvalidEpisode."""
    m = TV_RE.match(path)
    if not m:
        return None
    code = m.group(3)
    season, episode = int(code[1:3]), int(code[4:6])
    if season == 0 or episode == 0:
        raise InvalidEpisode(message=f"{path}: {code}")
    return m.group(1), m.group(2), season, episode


def match_series(results: List[Dict[str, Any]], name: str, year: str) -> Optional[Dict[str, Any]]:
    want = fuzzy_name(name)
    for r in results:
        if fuzzy_name(r.get("name", "")) == want and year in (r.get("first_air_date") or ""):
            return r
    return None


def series_rating(tmdb: TMDB, tvid: int, countries: List[str]) -> str:
    for country in countries:
        try:
            return tmdb.tv_content_rating(tvid, country)
        except ReleaseTypeNotFound:
            continue
    return ""


class TVPass:
    """State for one sync pass; each series is synced at most once."""

    def __init__(self, media: Media, tmdb: TMDB):
        self.media = media
        self.tmdb = tmdb
        self.config = media.config.tv
        self.synced: Set[int] = set()
        self.series: Dict[int, TVSeries] = {}
        self.series_fields: Dict[int, FieldMap] = {}

    async def sync_series(self, tvid: int) -> Optional[TVSeries]:
        if tvid in self.synced:
            return self.series.get(tvid)
        self.synced.add(tvid)

        tmdb, cfg = self.tmdb, self.config
        d = await asyncio.to_thread(tmdb.tv_detail, tvid)
        if not d:
            return None
        rating = await asyncio.to_thread(series_rating, tmdb, tvid, cfg.release_countries)
        keywords = await asyncio.to_thread(tmdb.tv_keyword_names, tvid)
        credits = await asyncio.to_thread(tmdb.tv_credits, tvid)
        cast = sorted_cast(credits, cfg.cast_limit)
        crew = crew_with_jobs(credits, cfg.crew_jobs)

        async with self.media.session() as db:
            for model in (TVSeriesGenre, TVSeriesKeyword, TVSeriesCast, TVSeriesCrew):
                await db.execute(delete(model).where(model.tvid == tvid))
            s = (await db.execute(select(TVSeries).where(TVSeries.tvid == tvid))).scalars().first()
            if s is None:
                s = TVSeries(tvid=tvid)
                db.add(s)
            s.name = d.get("name", "")
            s.sort_name = sort_title(s.name)
            s.original_name = d.get("original_name", "")
            s.original_language = d.get("original_language", "")
            s.backdrop_path = d.get("backdrop_path") or ""
            s.poster_path = d.get("poster_path") or ""
            s.date = parse_date(d.get("first_air_date") or "")
            s.end_date = parse_date(d.get("last_air_date") or "")
            s.overview = d.get("overview") or ""
            s.tagline = d.get("tagline") or ""
            s.rating = rating
            s.vote_average = float(d.get("vote_average") or 0)
            s.vote_count = int(d.get("vote_count") or 0)
            s.season_count = int(d.get("number_of_seasons") or 0)
            s.episode_count = int(d.get("number_of_episodes") or 0)
            s.status = d.get("status") or ""
            for g in d.get("genres") or []:
                db.add(TVSeriesGenre(tvid=tvid, name=g.get("name", "")))
            for k in keywords:
                db.add(TVSeriesKeyword(tvid=tvid, name=k))
            for c in cast:
                db.add(TVSeriesCast(tvid=tvid, peid=int(c.get("id") or 0),
                                    character=c.get("character", ""), rank=int(c.get("order") or 0)))
            for c in crew:
                db.add(TVSeriesCrew(tvid=tvid, peid=int(c.get("id") or 0),
                                    department=c.get("department", ""), job=c.get("job", "")))
            await ensure_people(db, tmdb, [int(c.get("id") or 0) for c in cast + crew])
            await db.commit()

        fields: FieldMap = {}
        add_field(fields, "series", s.name)
        add_field(fields, "rating", s.rating)
        for g in d.get("genres") or []:
            add_field(fields, "genre", g.get("name", ""))
        for k in keywords:
            add_field(fields, "keyword", k)
        for c in cast:
            add_field(fields, "cast", c.get("name", ""))
            add_field(fields, "character", c.get("character", ""))
        self.series[tvid] = s
        self.series_fields[tvid] = fields
        log.info("tv series: %s (%d)", s.name, tvid)
        return s

    async def sync_episode(self, obj: BucketObject, name: str, year: str, season: int, episode: int) -> str:
        tv = self.media.tv
        existing = await tv.lookup_key(obj.key)
        if existing is not None and existing.etag == obj.etag:
            return "unchanged"

        results = await asyncio.to_thread(self.tmdb.tv_search, name)
        r = match_series(results, name, year)
        if r is None:
            log.info("tv: no match for '%s' (%s)", name, year)
            return "skipped"
        tvid = int(r["id"])
        s = await self.sync_series(tvid)
        if s is None:
            return "skipped"

        d = await asyncio.to_thread(self.tmdb.tv_episode_detail, tvid, season, episode)
        if not d:
            log.info("tv: no episode %s S%02dE%02d", s.name, season, episode)
            return "skipped"
        credits = await asyncio.to_thread(self.tmdb.tv_episode_credits, tvid, season, episode)
        cast = sorted_cast(credits, self.config.cast_limit)
        crew = crew_with_jobs(credits, self.config.crew_jobs)

        async with self.media.session() as db:
            uuid = existing.uuid if existing is not None else None
            for model in (TVEpisodeCast, TVEpisodeCrew):
                await db.execute(delete(model).where(
                    model.tvid == tvid, model.season == season, model.episode == episode))
            await db.execute(delete(TVEpisode).where(
                (TVEpisode.key == obj.key)
                | ((TVEpisode.tvid == tvid) & (TVEpisode.season == season) & (TVEpisode.episode == episode))))
            e = TVEpisode(
                tvid=tvid, season=season, episode=episode,
                name=d.get("name", ""),
                overview=d.get("overview") or "",
                still_path=d.get("still_path") or "",
                date=parse_date(d.get("air_date") or ""),
                runtime=int(d.get("runtime") or 0),
                vote_average=float(d.get("vote_average") or 0),
                vote_count=int(d.get("vote_count") or 0),
                key=obj.key, size=obj.size, etag=obj.etag, last_modified=obj.last_modified,
            )
            if uuid:
                e.uuid = uuid
            db.add(e)
            for c in cast:
                db.add(TVEpisodeCast(tvid=tvid, season=season, episode=episode, peid=int(c.get("id") or 0),
                                     character=c.get("character", ""), rank=int(c.get("order") or 0)))
            for c in crew:
                db.add(TVEpisodeCrew(tvid=tvid, season=season, episode=episode, peid=int(c.get("id") or 0),
                                     department=c.get("department", ""), job=c.get("job", "")))
            await ensure_people(db, self.tmdb, [int(c.get("id") or 0) for c in cast + crew])
            await db.commit()

        # copy list values too; episodes must not add to the series fields
        fields = {k: list(v) if isinstance(v, list) else v for k, v in (self.series_fields.get(tvid) or {}).items()}
        add_field(fields, "title", e.name)
        add_field(fields, "season", season)
        add_field(fields, "episode", episode)
        if e.date:
            add_field(fields, "date", e.date)
        add_field(fields, "vote", int(e.vote_average * 10))
        for c in cast:
            add_field(fields, "cast", c.get("name", ""))
            add_field(fields, "character", c.get("character", ""))
        for c in crew:
            add_field(fields, c.get("department", ""), c.get("name", ""))
            add_field(fields, c.get("job", ""), c.get("name", ""))
        await self.media.tv_index.index({obj.key: fields})
        return "updated" if existing is not None else "added"


async def sync_tv(media: Media, tmdb: Optional[TMDB] = None,
                  since: Optional[datetime] = None) -> Dict[str, int]:
    counts = {"added": 0, "updated": 0, "unchanged": 0, "skipped": 0, "errors": 0}
    buckets = media.video_buckets(MEDIA_TV)
    if not buckets:
        return counts
    if since is None:
        since = await media.tv.last_modified()
    state = TVPass(media, tmdb or TMDB(Getter()))

    for bucket in buckets:
        objects = await asyncio.to_thread(lambda: list(bucket.list(since)))
        for obj in objects:
            try:
                parsed = parse_episode_path(obj.path)
                if parsed is None:
                    continue
                counts[await state.sync_episode(obj, *parsed)] += 1
            except InvalidEpisode as e:
                log.info("tv: %s", e)
                counts["skipped"] += 1
            except Exception as e:
                log.warning("tv %s: %s", obj.key, e)
                counts["errors"] += 1

    log.info("tv sync %s: %s", media.name, counts)
    return counts


# -------- images --------

async def sync_posters(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    n = await warm_images(writer, [img_url(s.poster_path, POSTER_SIZE) for s in await media.tv.series_list()])
    log.info("tv posters %s: %d cached", media.name, n)
    return n


async def sync_backdrops(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    n = await warm_images(writer, [img_url(s.backdrop_path, BACKDROP_SIZE) for s in await media.tv.series_list()])
    log.info("tv backdrops %s: %d cached", media.name, n)
    return n


async def sync_stills(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    async with media.session() as db:
        paths = (await db.execute(select(TVEpisode.still_path).where(TVEpisode.still_path != ""))).scalars().all()
    n = await warm_images(writer, [img_url(p, STILL_SIZE) for p in paths])
    log.info("tv stills %s: %d cached", media.name, n)
    return n
