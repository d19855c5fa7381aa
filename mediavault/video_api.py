# mediavault/video_api.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from .auth_api import access_context
from .context import RequestContext
from .view import (
    cast_out, crew_out, movie_out, movie_playlist, person_out, playlist_response,
    tv_episode_out, tv_series_out,
)

router = APIRouter(prefix="/api", tags=["video"])


# -------- movies --------
@router.get("/movies")
async def movies(ctx: RequestContext = Depends(access_context)):
    return [movie_out(m) for m in await ctx.film.movies()]


@router.get("/movies/{id}")
async def movie_get(id: str, ctx: RequestContext = Depends(access_context)):
    film = ctx.film
    m = await film.find_movie(id)
    c = await film.collection(m)
    return {
        "movie": movie_out(m),
        "collection": {
            "name": c.name,
            "movies": [movie_out(o) for o in await film.collection_movies(c)],
        } if c else None,
        "genres": await film.genres(m),
        "keywords": await film.keywords(m),
        "cast": cast_out(await film.cast(m)),
        "crew": crew_out(await film.crew(m)),
        "directors": await film.directors(m),
        "trailers": [
            {"name": t.name, "site": t.site, "key": t.key, "url": t.url, "size": t.size, "official": t.official}
            for t in await film.trailers(m)
        ],
    }


@router.get("/movies/{id}/playlist")
@router.get("/movies/{id}/playlist.xspf")
async def movie_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    m = await ctx.film.find_movie(id)
    return await playlist_response(ctx, request, await movie_playlist(ctx, m))


@router.get("/movie-genres/{name}")
async def movie_genre(name: str, ctx: RequestContext = Depends(access_context)):
    return {"name": name, "movies": [movie_out(m) for m in await ctx.film.genre(name)]}


@router.get("/movie-keywords/{name}")
async def movie_keyword(name: str, ctx: RequestContext = Depends(access_context)):
    return {"name": name, "movies": [movie_out(m) for m in await ctx.film.keyword(name)]}


@router.get("/profiles/{peid}")
async def profile(peid: int, ctx: RequestContext = Depends(access_context)):
    film = ctx.film
    p = await film.person(peid)
    return {
        "person": person_out(p),
        "starring": [movie_out(m) for m in await film.starring(p)],
        "directing": [movie_out(m) for m in await film.directing(p)],
        "writing": [movie_out(m) for m in await film.writing(p)],
        "tv": [tv_series_out(s) for s in await ctx.tv.starring(p)],
    }


# -------- tv --------
@router.get("/tv")
async def tv_index(ctx: RequestContext = Depends(access_context)):
    return [tv_series_out(s) for s in await ctx.tv.series_list()]


@router.get("/tv/series/{id}")
async def tv_series(id: int, ctx: RequestContext = Depends(access_context)):
    tv = ctx.tv
    s = await tv.series(id)
    return {
        "series": tv_series_out(s),
        "episodes": [tv_episode_out(e) for e in await tv.episodes(s)],
        "genres": await tv.genres(s),
        "keywords": await tv.keywords(s),
        "cast": cast_out(await tv.series_cast(s)),
        "crew": crew_out(await tv.series_crew(s)),
    }


@router.get("/tv/episodes/{id}")
async def tv_episode(id: str, ctx: RequestContext = Depends(access_context)):
    tv = ctx.tv
    e = await tv.find_episode(id)
    s = await tv.lookup_tvid(e.tvid)
    return {
        "series": tv_series_out(s) if s else None,
        "episode": tv_episode_out(e),
        "cast": cast_out(await tv.episode_cast(e)),
        "crew": crew_out(await tv.episode_crew(e)),
    }
