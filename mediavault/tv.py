# mediavault/tv.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from sqlalchemy import func, select

from .errors import NotFound
from .film import BACKDROP_SIZE, POSTER_SIZE, tmdb_path
from .media_models import (
    Person, TVEpisode, TVEpisodeCast, TVEpisodeCrew, TVSeries, TVSeriesCast,
    TVSeriesCrew, TVSeriesGenre, TVSeriesKeyword,
)

if TYPE_CHECKING:
    from .media import Media

STILL_SIZE = "w300"


def series_poster(s: TVSeries) -> str:
    return tmdb_path(s.poster_path, POSTER_SIZE)


def series_backdrop(s: TVSeries) -> str:
    return tmdb_path(s.backdrop_path, BACKDROP_SIZE)


def episode_still(e: TVEpisode) -> str:
    return tmdb_path(e.still_path, STILL_SIZE)


def episode_location(e: TVEpisode) -> str:
    return f"/api/tv/episodes/{e.uuid}/location"


def episode_code(e: TVEpisode) -> str:
    return f"S{e.season:02d}E{e.episode:02d}"


class TV:
    def __init__(self, media: "Media"):
        self.media = media
        self.config = media.config.tv

    async def _all(self, stmt) -> list:
        async with self.media.session() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def _first(self, stmt):
        async with self.media.session() as db:
            return (await db.execute(stmt)).scalars().first()

    async def series_list(self) -> List[TVSeries]:
        return await self._all(select(TVSeries).order_by(TVSeries.sort_name))

    async def series(self, id: int) -> TVSeries:
        s = await self._first(select(TVSeries).where(TVSeries.id == id))
        if s is None:
            raise NotFound("series-not-found")
        return s

    async def lookup_tvid(self, tvid: int) -> Optional[TVSeries]:
        return await self._first(select(TVSeries).where(TVSeries.tvid == tvid))

    async def episodes(self, s: TVSeries) -> List[TVEpisode]:
        return await self._all(
            select(TVEpisode).where(TVEpisode.tvid == s.tvid).order_by(TVEpisode.season, TVEpisode.episode))

    async def episode(self, id: int) -> TVEpisode:
        e = await self._first(select(TVEpisode).where(TVEpisode.id == id))
        if e is None:
            raise NotFound("episode-not-found")
        return e

    async def find_episode(self, id: str) -> TVEpisode:
        if id.isdigit():
            return await self.episode(int(id))
        return await self.lookup_uuid(id)

    async def lookup_uuid(self, uuid: str) -> TVEpisode:
        e = await self._first(select(TVEpisode).where(TVEpisode.uuid == uuid))
        if e is None:
            raise NotFound("episode-not-found")
        return e

    async def lookup_etag(self, etag: str) -> Optional[TVEpisode]:
        return await self._first(select(TVEpisode).where(TVEpisode.etag == etag))

    async def lookup_key(self, key: str) -> Optional[TVEpisode]:
        return await self._first(select(TVEpisode).where(TVEpisode.key == key))

    async def episodes_for_keys(self, keys: Sequence[str]) -> List[TVEpisode]:
        if not keys:
            return []
        rows = await self._all(select(TVEpisode).where(TVEpisode.key.in_(list(keys))))
        by_key = {e.key: e for e in rows}
        return [by_key[k] for k in keys if k in by_key]

    async def last_modified(self) -> Optional[datetime]:
        async with self.media.session() as db:
            return (await db.execute(select(func.max(TVEpisode.last_modified)))).scalar()

    # -------- details --------
    async def genres(self, s: TVSeries) -> List[str]:
        return await self._all(select(TVSeriesGenre.name).where(TVSeriesGenre.tvid == s.tvid))

    async def keywords(self, s: TVSeries) -> List[str]:
        return await self._all(select(TVSeriesKeyword.name).where(TVSeriesKeyword.tvid == s.tvid))

    async def series_cast(self, s: TVSeries) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(TVSeriesCast, Person).join(Person, Person.peid == TVSeriesCast.peid)
                .where(TVSeriesCast.tvid == s.tvid).order_by(TVSeriesCast.rank))).all()
        return [{"cast": c, "person": p} for c, p in rows]

    async def series_crew(self, s: TVSeries) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(TVSeriesCrew, Person).join(Person, Person.peid == TVSeriesCrew.peid)
                .where(TVSeriesCrew.tvid == s.tvid))).all()
        return [{"crew": c, "person": p} for c, p in rows]

    async def episode_cast(self, e: TVEpisode) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(TVEpisodeCast, Person).join(Person, Person.peid == TVEpisodeCast.peid)
                .where(TVEpisodeCast.tvid == e.tvid, TVEpisodeCast.season == e.season,
                       TVEpisodeCast.episode == e.episode)
                .order_by(TVEpisodeCast.rank))).all()
        return [{"cast": c, "person": p} for c, p in rows]

    async def episode_crew(self, e: TVEpisode) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(TVEpisodeCrew, Person).join(Person, Person.peid == TVEpisodeCrew.peid)
                .where(TVEpisodeCrew.tvid == e.tvid, TVEpisodeCrew.season == e.season,
                       TVEpisodeCrew.episode == e.episode))).all()
        return [{"crew": c, "person": p} for c, p in rows]

    async def starring(self, p: Person) -> List[TVSeries]:
        tvids = select(TVSeriesCast.tvid).where(TVSeriesCast.peid == p.peid)
        return await self._all(select(TVSeries).where(TVSeries.tvid.in_(tvids)).order_by(TVSeries.date))

    # -------- lists --------
    async def recently_added(self) -> List[TVEpisode]:
        return await self._all(
            select(TVEpisode).order_by(TVEpisode.last_modified.desc()).limit(self.config.recent_limit))

    async def recently_aired(self) -> List[TVEpisode]:
        return await self._all(
            select(TVEpisode).where(TVEpisode.date.is_not(None))
            .order_by(TVEpisode.date.desc()).limit(self.config.recent_limit))

    async def search(self, q: str, limit: Optional[int] = None) -> List[TVEpisode]:
        keys = await self.media.tv_index.search(q, limit or self.config.search_limit)
        return await self.episodes_for_keys(keys)

    async def query(self, q: str) -> Dict[str, list]:
        like = f"%{q}%"
        return {
            "series": await self._all(select(TVSeries).where(TVSeries.name.ilike(like)).order_by(TVSeries.sort_name)),
            "episodes": await self._all(
                select(TVEpisode).where(TVEpisode.name.ilike(like)).limit(self.config.search_limit)),
        }
