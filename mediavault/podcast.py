# mediavault/podcast.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from sqlalchemy import delete, select

from .errors import NotFound
from .media_models import Episode, Series, Subscription

if TYPE_CHECKING:
    from .media import Media


def episode_location(e: Episode) -> str:
    return f"/api/episodes/{e.id}/location"


class Podcasts:
    def __init__(self, media: "Media"):
        self.media = media
        self.config = media.config.podcast

    async def _all(self, stmt) -> list:
        async with self.media.session() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def _first(self, stmt):
        async with self.media.session() as db:
            return (await db.execute(stmt)).scalars().first()

    async def series_list(self) -> List[Series]:
        return await self._all(select(Series).order_by(Series.title))

    async def series(self, id: int) -> Series:
        s = await self._first(select(Series).where(Series.id == id))
        if s is None:
            raise NotFound("series-not-found")
        return s

    async def find_series(self, id: str) -> Series:
        if id.isdigit():
            return await self.series(int(id))
        s = await self._first(select(Series).where(Series.sid == id))
        if s is None:
            raise NotFound("series-not-found")
        return s

    async def lookup_sid(self, sid: str) -> Optional[Series]:
        return await self._first(select(Series).where(Series.sid == sid))

    async def episodes(self, s: Series, limit: Optional[int] = None) -> List[Episode]:
        stmt = select(Episode).where(Episode.sid == s.sid).order_by(Episode.date.desc())
        if limit:
            stmt = stmt.limit(limit)
        return await self._all(stmt)

    async def episode(self, id: int) -> Episode:
        e = await self._first(select(Episode).where(Episode.id == id))
        if e is None:
            raise NotFound("episode-not-found")
        return e

    async def find_episode(self, id: str) -> Episode:
        if id.isdigit():
            return await self.episode(int(id))
        e = await self.lookup_eid(id)
        if e is None:
            raise NotFound("episode-not-found")
        return e

    async def lookup_eid(self, eid: str) -> Optional[Episode]:
        return await self._first(select(Episode).where(Episode.eid == eid))

    async def episodes_for_eids(self, eids: Sequence[str]) -> List[Episode]:
        if not eids:
            return []
        rows = await self._all(select(Episode).where(Episode.eid.in_(list(eids))))
        by_eid = {e.eid: e for e in rows}
        return [by_eid[k] for k in eids if k in by_eid]

    async def episode_series(self, e: Episode) -> Series:
        s = await self.lookup_sid(e.sid)
        if s is None:
            raise NotFound("series-not-found")
        return s

    async def recent_episodes(self) -> List[Episode]:
        return await self._all(select(Episode).order_by(Episode.date.desc()).limit(self.config.recent_limit))

    async def search(self, q: str, limit: Optional[int] = None) -> List[Episode]:
        eids = await self.media.podcast_index.search(q, limit or self.config.search_limit)
        return await self.episodes_for_eids(eids)

    async def query(self, q: str) -> Dict[str, list]:
        like = f"%{q}%"
        return {
            "series": await self._all(select(Series).where(Series.title.ilike(like)).order_by(Series.title)),
            "episodes": await self._all(
                select(Episode).where(Episode.title.ilike(like)).order_by(Episode.date.desc())
                .limit(self.config.search_limit)),
        }

    # -------- subscriptions --------
    async def subscribed(self, user: str) -> List[Series]:
        sids = select(Subscription.sid).where(Subscription.user == user)
        return await self._all(select(Series).where(Series.sid.in_(sids)).order_by(Series.title))

    async def is_subscribed(self, user: str, s: Series) -> bool:
        return await self._first(select(Subscription).where(
            Subscription.user == user, Subscription.sid == s.sid)) is not None

    async def subscribe(self, user: str, s: Series) -> None:
        if await self.is_subscribed(user, s):
            return
        async with self.media.session() as db:
            db.add(Subscription(user=user, sid=s.sid))
            await db.commit()

    async def unsubscribe(self, user: str, s: Series) -> None:
        async with self.media.session() as db:
            await db.execute(delete(Subscription).where(Subscription.user == user, Subscription.sid == s.sid))
            await db.commit()
