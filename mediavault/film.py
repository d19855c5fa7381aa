# mediavault/film.py
"""Movie catalogue queries: lookups, credits, recommendations and searches."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from sqlalchemy import func, select

from .config import DateRecommend
from .errors import NotFound
from .media_models import Cast, Collection, Crew, Genre, Keyword, Movie, Person, Trailer

if TYPE_CHECKING:
    from .media import Media

log = logging.getLogger("film")

POSTER_SIZE = "w342"
POSTER_SMALL = "w154"
BACKDROP_SIZE = "w1280"
PROFILE_SIZE = "w185"

DIRECTING = "Directing"
WRITING = "Writing"
DIRECTOR = "Director"


def tmdb_path(path: str, size: str) -> str:
    """Local image path for a TMDB image path such as /abc.jpg."""
    return f"/img/tm/{size}{path}" if path else ""


def poster(m: Movie) -> str:
    return tmdb_path(m.poster_path, POSTER_SIZE)


def poster_small(m: Movie) -> str:
    return tmdb_path(m.poster_path, POSTER_SMALL)


def backdrop(m: Movie) -> str:
    return tmdb_path(m.backdrop_path, BACKDROP_SIZE)


def profile_image(p: Person) -> str:
    return tmdb_path(p.profile_path, PROFILE_SIZE)


def movie_location(m: Movie) -> str:
    return f"/api/movies/{m.uuid}/location"


class Film:
    def __init__(self, media: "Media"):
        self.media = media
        self.config = media.config.film

    async def _all(self, stmt) -> list:
        async with self.media.session() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def _first(self, stmt):
        async with self.media.session() as db:
            return (await db.execute(stmt)).scalars().first()

    # -------- movies --------
    async def movies(self) -> List[Movie]:
        return await self._all(select(Movie).order_by(Movie.sort_title))

    async def movie(self, id: int) -> Movie:
        m = await self._first(select(Movie).where(Movie.id == id))
        if m is None:
            raise NotFound("movie-not-found")
        return m

    async def find_movie(self, id: str) -> Movie:
        """Numeric id, uuid, "tmid:<n>" or "imid:<tt..>"."""
        if id.isdigit():
            return await self.movie(int(id))
        if id.startswith("tmid:") and id[5:].isdigit():
            stmt = select(Movie).where(Movie.tmid == int(id[5:]))
        elif id.startswith("imid:"):
            stmt = select(Movie).where(Movie.imid == id[5:])
        else:
            stmt = select(Movie).where(Movie.uuid == id)
        m = await self._first(stmt)
        if m is None:
            raise NotFound("movie-not-found")
        return m

    async def lookup_uuid(self, uuid: str) -> Movie:
        m = await self._first(select(Movie).where(Movie.uuid == uuid))
        if m is None:
            raise NotFound("movie-not-found")
        return m

    async def lookup_etag(self, etag: str) -> Optional[Movie]:
        return await self._first(select(Movie).where(Movie.etag == etag))

    async def lookup_tmid(self, tmid: int) -> Optional[Movie]:
        return await self._first(select(Movie).where(Movie.tmid == tmid))

    async def lookup_key(self, key: str) -> Optional[Movie]:
        return await self._first(select(Movie).where(Movie.key == key))

    async def movies_for_keys(self, keys: Sequence[str]) -> List[Movie]:
        if not keys:
            return []
        rows = await self._all(select(Movie).where(Movie.key.in_(list(keys))))
        by_key = {m.key: m for m in rows}
        return [by_key[k] for k in keys if k in by_key]

    async def movies_for_tmids(self, tmids: Sequence[int]) -> Dict[int, Movie]:
        if not tmids:
            return {}
        rows = await self._all(select(Movie).where(Movie.tmid.in_(list(tmids))))
        return {m.tmid: m for m in rows}

    async def last_modified(self) -> Optional[datetime]:
        async with self.media.session() as db:
            return (await db.execute(select(func.max(Movie.last_modified)))).scalar()

    # -------- details --------
    async def collection(self, m: Movie) -> Optional[Collection]:
        return await self._first(select(Collection).where(Collection.tmid == m.tmid))

    async def collection_movies(self, c: Collection) -> List[Movie]:
        tmids = select(Collection.tmid).where(Collection.name == c.name)
        return await self._all(select(Movie).where(Movie.tmid.in_(tmids)).order_by(Movie.date))

    async def genres(self, m: Movie) -> List[str]:
        return await self._all(select(Genre.name).where(Genre.tmid == m.tmid).order_by(Genre.id))

    async def keywords(self, m: Movie) -> List[str]:
        return await self._all(select(Keyword.name).where(Keyword.tmid == m.tmid).order_by(Keyword.id))

    async def cast(self, m: Movie) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(Cast, Person).join(Person, Person.peid == Cast.peid)
                .where(Cast.tmid == m.tmid).order_by(Cast.rank))).all()
        return [{"cast": c, "person": p} for c, p in rows]

    async def crew(self, m: Movie) -> List[Dict[str, object]]:
        async with self.media.session() as db:
            rows = (await db.execute(
                select(Crew, Person).join(Person, Person.peid == Crew.peid)
                .where(Crew.tmid == m.tmid).order_by(Crew.id))).all()
        return [{"crew": c, "person": p} for c, p in rows]

    async def trailers(self, m: Movie) -> List[Trailer]:
        return await self._all(select(Trailer).where(Trailer.tmid == m.tmid).order_by(Trailer.date.desc()))

    async def directors(self, m: Movie) -> List[str]:
        async with self.media.session() as db:
            return list((await db.execute(
                select(Person.name).join(Crew, Crew.peid == Person.peid)
                .where(Crew.tmid == m.tmid, Crew.job == DIRECTOR).order_by(Crew.id))).scalars().all())

    # -------- people --------
    async def person(self, peid: int) -> Person:
        p = await self._first(select(Person).where(Person.peid == peid))
        if p is None:
            raise NotFound("person-not-found")
        return p

    async def starring(self, p: Person) -> List[Movie]:
        tmids = select(Cast.tmid).where(Cast.peid == p.peid)
        return await self._all(select(Movie).where(Movie.tmid.in_(tmids)).order_by(Movie.date))

    async def _crew_movies(self, p: Person, department: str) -> List[Movie]:
        tmids = select(Crew.tmid).where(Crew.peid == p.peid, Crew.department == department)
        return await self._all(select(Movie).where(Movie.tmid.in_(tmids)).order_by(Movie.date))

    async def directing(self, p: Person) -> List[Movie]:
        return await self._crew_movies(p, DIRECTING)

    async def writing(self, p: Person) -> List[Movie]:
        return await self._crew_movies(p, WRITING)

    # -------- lists --------
    async def genre(self, name: str) -> List[Movie]:
        tmids = select(Genre.tmid).where(Genre.name == name)
        return await self._all(select(Movie).where(Movie.tmid.in_(tmids)).order_by(Movie.sort_title))

    async def keyword(self, name: str) -> List[Movie]:
        tmids = select(Keyword.tmid).where(Keyword.name == name)
        return await self._all(select(Movie).where(Movie.tmid.in_(tmids)).order_by(Movie.sort_title))

    async def recently_added(self) -> List[Movie]:
        return await self._all(
            select(Movie).order_by(Movie.last_modified.desc()).limit(self.config.recent_limit))

    async def recently_released(self) -> List[Movie]:
        since = datetime.now() - timedelta(days=self.config.recent_days)
        return await self._all(
            select(Movie).where(Movie.date >= since).order_by(Movie.date.desc()).limit(self.config.recent_limit))

    async def search(self, q: str, limit: Optional[int] = None) -> List[Movie]:
        keys = await self.media.film_index.search(q, limit or self.config.search_limit)
        return await self.movies_for_keys(keys)

    async def query(self, q: str) -> List[Movie]:
        return await self._all(
            select(Movie).where(Movie.title.ilike(f"%{q}%")).order_by(Movie.sort_title)
            .limit(self.config.search_limit))

    async def recommend(self, now: Optional[datetime] = None) -> List[Dict[str, object]]:
        """Canned queries whose calendar match fits today, e.g. "Oct" or "Fri 13"."""
        now = now or datetime.now()
        out = []
        for r in self.config.recommend:
            if not recommend_matches(r, now):
                continue
            movies = await self.search(r.query)
            if movies:
                out.append({"name": r.name, "movies": movies})
        return out


def recommend_matches(r: DateRecommend, now: datetime) -> bool:
    return now.strftime(r.layout) == r.match
