# mediavault/film_sync.py
"""Movie ingestion: bucket files matched against TMDB, stored and indexed."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select

from .bucket import BucketObject
from .client import Getter
from .config import MEDIA_FILM, PREFER_LARGEST, PREFER_SMALLEST
from .dates import parse_date, parse_json_date
from .errors import DuplicateFound, ReleaseTypeNotFound
from .film import BACKDROP_SIZE, POSTER_SIZE, POSTER_SMALL, PROFILE_SIZE
from .images import ImageCache, image_writer
from .media import Media
from .media_models import Cast, Collection, Crew, Genre, Keyword, Movie, Person, Trailer
from .search import FieldMap, add_field
from .tmdb import (
    TMDB, TYPE_DIGITAL, TYPE_THEATRICAL, crew_with_jobs, img_url, is_youtube_trailer,
    sorted_cast, youtube_link,
)
from .utils import fuzzy_name, sort_title

log = logging.getLogger("sync")

MOVIE_RE = re.compile(r".*/(.+?)\s*\(([\d]+)\)(\s-\s(.+))?\.(mkv|mp4)$")

RELEASE_TYPES = (TYPE_THEATRICAL, TYPE_DIGITAL)


def parse_movie_path(path: str) -> Optional[Tuple[str, str]]:
    m = MOVIE_RE.match(path)
    if not m:
        return None
    return m.group(1), m.group(2)


def match_movie(results: List[Dict[str, Any]], title: str, year: str) -> Optional[Dict[str, Any]]:
    """First result with the same fuzzy title whose release date has the year."""
    want = fuzzy_name(title)
    for r in results:
        if fuzzy_name(r.get("title", "")) == want and year in (r.get("release_date") or ""):
            return r
    return None


def prefer_new(policy: str, new_size: int, old_size: int) -> bool:
    if policy == PREFER_LARGEST:
        return new_size > old_size
    if policy == PREFER_SMALLEST:
        return new_size < old_size
    raise ValueError(f"unsupported duplicate_resolution '{policy}'")


def movie_rating(tmdb: TMDB, tmid: int, countries: Iterable[str]) -> Tuple[str, Optional[datetime]]:
    """Certification and release date; first country with a theatrical, then digital, release wins."""
    for country in countries:
        for release_type in RELEASE_TYPES:
            try:
                rd = tmdb.movie_release_type(tmid, country, release_type)
            except ReleaseTypeNotFound:
                continue
            return rd.get("certification", ""), parse_json_date(rd.get("release_date", ""))
    return "", None


@dataclass
class MovieDetail:
    """Everything fetched from TMDB for one movie."""
    detail: Dict[str, Any]
    credits: Dict[str, Any] = field(default_factory=dict)
    keywords: List[str] = field(default_factory=list)
    videos: List[Dict[str, Any]] = field(default_factory=list)
    rating: str = ""
    date: Optional[datetime] = None


def fetch_movie(tmdb: TMDB, tmid: int, countries: List[str]) -> Optional[MovieDetail]:
    detail = tmdb.movie_detail(tmid)
    if not detail:
        return None
    md = MovieDetail(detail=detail)
    md.credits = tmdb.movie_credits(tmid)
    md.keywords = tmdb.movie_keyword_names(tmid)
    md.videos = tmdb.movie_videos(tmid)
    md.rating, md.date = movie_rating(tmdb, tmid, countries)
    if md.date is None:
        md.date = parse_date(detail.get("release_date", ""))
    return md


async def ensure_people(db, tmdb: TMDB, peids: Iterable[int]) -> None:
    """Add a Person row for every credited id not already stored."""
    wanted = {p for p in peids if p}
    if not wanted:
        return
    known = set((await db.execute(select(Person.peid).where(Person.peid.in_(wanted)))).scalars().all())
    for peid in sorted(wanted - known):
        d = await asyncio.to_thread(tmdb.person_detail, peid)
        if not d:
            continue
        db.add(Person(
            peid=peid,
            imid=d.get("imdb_id") or "",
            name=d.get("name", ""),
            profile_path=d.get("profile_path") or "",
            bio=d.get("biography") or "",
            birthplace=d.get("place_of_birth") or "",
            birthday=parse_date(d.get("birthday") or ""),
            deathday=parse_date(d.get("deathday") or ""),
        ))
    await db.flush()


def movie_index(m: Movie, md: MovieDetail, cast: List[Dict[str, Any]], crew: List[Dict[str, Any]]) -> FieldMap:
    fields: FieldMap = {}
    add_field(fields, "budget", m.budget)
    if m.date:
        add_field(fields, "date", m.date)
    add_field(fields, "rating", m.rating)
    add_field(fields, "revenue", m.revenue)
    add_field(fields, "runtime", m.runtime)
    add_field(fields, "title", m.title)
    add_field(fields, "tagline", m.tagline)
    add_field(fields, "vote", int(m.vote_average * 10))
    add_field(fields, "vote_count", m.vote_count)
    coll = md.detail.get("belongs_to_collection") or {}
    if coll.get("name"):
        add_field(fields, "collection", coll["name"])
    for g in md.detail.get("genres") or []:
        add_field(fields, "genre", g.get("name", ""))
    for k in md.keywords:
        add_field(fields, "keyword", k)
    for c in cast:
        add_field(fields, "cast", c.get("name", ""))
        add_field(fields, "character", c.get("character", ""))
    for c in crew:
        add_field(fields, c.get("department", ""), c.get("name", ""))
        add_field(fields, c.get("job", ""), c.get("name", ""))
    return fields


async def _delete_movie(db, m: Movie) -> None:
    for model in (Collection, Genre, Keyword, Cast, Crew, Trailer):
        await db.execute(delete(model).where(model.tmid == m.tmid))
    await db.execute(delete(Movie).where(Movie.id == m.id))


async def sync_movie(media: Media, tmdb: TMDB, obj: BucketObject, title: str, year: str) -> str:
    """Returns "unchanged", "skipped", "added" or "updated"; raises DuplicateFound."""
    film = media.film
    cfg = media.config.film

    existing = await film.lookup_key(obj.key)
    if existing is not None and existing.etag == obj.etag:
        return "unchanged"

    results = await asyncio.to_thread(tmdb.movie_search, title)
    r = match_movie(results, title, year)
    if r is None:
        log.info("movie: no match for '%s' (%s)", title, year)
        return "skipped"
    tmid = int(r["id"])

    other = await film.lookup_tmid(tmid)
    replaced: Optional[Movie] = None
    if other is not None and other.key != obj.key:
        if not prefer_new(cfg.duplicate_resolution, obj.size, other.size):
            raise DuplicateFound(message=f"{obj.key} duplicates {other.key}")
        replaced = other

    md = await asyncio.to_thread(fetch_movie, tmdb, tmid, cfg.release_countries)
    if md is None:
        log.info("movie: no detail for %s", tmid)
        return "skipped"
    d = md.detail
    cast = sorted_cast(md.credits, cfg.cast_limit)
    crew = crew_with_jobs(md.credits, cfg.crew_jobs)

    async with media.session() as db:
        # delete dependents, then entity, then recreate in order
        uuid = existing.uuid if existing is not None else None
        for old in (existing, replaced):
            if old is not None:
                await _delete_movie(db, old)
        await db.flush()

        m = Movie(
            tmid=tmid,
            imid=d.get("imdb_id") or "",
            title=d.get("title", title),
            sort_title=sort_title(d.get("title", title)),
            original_title=d.get("original_title", ""),
            original_language=d.get("original_language", ""),
            backdrop_path=d.get("backdrop_path") or "",
            poster_path=d.get("poster_path") or "",
            budget=int(d.get("budget") or 0),
            revenue=int(d.get("revenue") or 0),
            overview=d.get("overview") or "",
            tagline=d.get("tagline") or "",
            runtime=int(d.get("runtime") or 0),
            vote_average=float(d.get("vote_average") or 0),
            vote_count=int(d.get("vote_count") or 0),
            rating=md.rating,
            date=md.date,
            key=obj.key,
            size=obj.size,
            etag=obj.etag,
            last_modified=obj.last_modified,
        )
        if uuid:
            m.uuid = uuid
        db.add(m)

        coll = d.get("belongs_to_collection") or {}
        if coll.get("name"):
            db.add(Collection(tmid=tmid, name=coll["name"], sort_name=sort_title(coll["name"])))
        for g in d.get("genres") or []:
            db.add(Genre(tmid=tmid, name=g.get("name", "")))
        for k in md.keywords:
            db.add(Keyword(tmid=tmid, name=k))
        for c in cast:
            db.add(Cast(tmid=tmid, peid=int(c.get("id") or 0), character=c.get("character", ""),
                        rank=int(c.get("order") or 0)))
        for c in crew:
            db.add(Crew(tmid=tmid, peid=int(c.get("id") or 0), department=c.get("department", ""),
                        job=c.get("job", "")))
        for v in md.videos:
            if not is_youtube_trailer(v):
                continue
            db.add(Trailer(tmid=tmid, name=v.get("name", ""), official=True, site=v.get("site", ""),
                           size=int(v.get("size") or 0), date=parse_json_date(v.get("published_at", "")),
                           key=v.get("key", ""), url=youtube_link(v)))
        await ensure_people(db, tmdb, [int(c.get("id") or 0) for c in cast + crew])
        await db.commit()

    if replaced is not None:
        await media.film_index.delete([replaced.key])
        log.info("movie: %s replaces %s", obj.key, replaced.key)
    await media.film_index.index({obj.key: movie_index(m, md, cast, crew)})
    log.info("movie: %s -> %s (%s)", obj.path, m.title, tmid)
    return "updated" if existing is not None else "added"


async def sync_film(media: Media, tmdb: Optional[TMDB] = None,
                    since: Optional[datetime] = None) -> Dict[str, int]:
    """One pass over the film buckets; files newer than `since` (default: the watermark)."""
    counts = {"added": 0, "updated": 0, "unchanged": 0, "skipped": 0, "duplicates": 0, "errors": 0}
    buckets = media.video_buckets(MEDIA_FILM)
    if not buckets:
        return counts
    if since is None:
        since = await media.film.last_modified()
    tmdb = tmdb or TMDB(Getter())

    for bucket in buckets:
        # listing errors abort the pass
        objects = await asyncio.to_thread(lambda: list(bucket.list(since)))
        for obj in objects:
            parsed = parse_movie_path(obj.path)
            if parsed is None:
                continue
            try:
                counts[await sync_movie(media, tmdb, obj, *parsed)] += 1
            except DuplicateFound as e:
                log.debug("movie: %s", e)
                counts["duplicates"] += 1
            except Exception as e:
                log.warning("movie %s: %s", obj.key, e)
                counts["errors"] += 1

    log.info("film sync %s: %s", media.name, counts)
    return counts


# -------- images --------

async def warm_images(writer: ImageCache, urls: Iterable[str]) -> int:
    n = 0
    for url in urls:
        if url and await asyncio.to_thread(writer.warm, url):
            n += 1
    return n


async def sync_posters(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    movies = await media.film.movies()
    urls = [img_url(m.poster_path, size) for m in movies for size in (POSTER_SIZE, POSTER_SMALL)]
    async with media.session() as db:
        people = (await db.execute(select(Person.profile_path).where(Person.profile_path != ""))).scalars().all()
    urls.extend(img_url(p, PROFILE_SIZE) for p in people)
    n = await warm_images(writer, urls)
    log.info("film posters %s: %d cached", media.name, n)
    return n


async def sync_backdrops(media: Media, writer: Optional[ImageCache] = None) -> int:
    writer = writer or image_writer()
    n = await warm_images(writer, [img_url(m.backdrop_path, BACKDROP_SIZE) for m in await media.film.movies()])
    log.info("film backdrops %s: %d cached", media.name, n)
    return n
