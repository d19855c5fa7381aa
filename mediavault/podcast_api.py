# mediavault/podcast_api.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from .auth_api import access_context
from .context import RequestContext
from .view import episode_out, episode_playlist, playlist_response, series_out, series_playlist

router = APIRouter(prefix="/api", tags=["podcasts"])


@router.get("/podcasts")
async def podcasts(ctx: RequestContext = Depends(access_context)):
    podcast = ctx.podcast
    return {
        "series": [series_out(s) for s in await podcast.series_list()],
        "episodes": [episode_out(e) for e in await podcast.recent_episodes()],
    }


@router.get("/podcasts/subscribed")
async def podcasts_subscribed(ctx: RequestContext = Depends(access_context)):
    return {"series": [series_out(s) for s in await ctx.podcast.subscribed(ctx.name)]}


@router.get("/series/{id}")
async def series_get(id: str, ctx: RequestContext = Depends(access_context)):
    podcast = ctx.podcast
    s = await podcast.find_series(id)
    return {
        "series": series_out(s),
        "subscribed": await podcast.is_subscribed(ctx.name, s),
        "episodes": [episode_out(e) for e in await podcast.episodes(s, podcast.config.episode_limit)],
    }


@router.get("/series/{id}/playlist")
@router.get("/series/{id}/playlist.xspf")
async def series_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    s = await ctx.podcast.find_series(id)
    return await playlist_response(ctx, request, await series_playlist(ctx, s))


@router.put("/series/{id}/subscribed", status_code=204)
async def series_subscribe(id: str, ctx: RequestContext = Depends(access_context)):
    s = await ctx.podcast.find_series(id)
    await ctx.podcast.subscribe(ctx.name, s)
    return Response(status_code=204)


@router.delete("/series/{id}/subscribed", status_code=204)
async def series_unsubscribe(id: str, ctx: RequestContext = Depends(access_context)):
    s = await ctx.podcast.find_series(id)
    await ctx.podcast.unsubscribe(ctx.name, s)
    return Response(status_code=204)


@router.get("/episodes/{id}")
async def episode_get(id: str, ctx: RequestContext = Depends(access_context)):
    podcast = ctx.podcast
    e = await podcast.find_episode(id)
    return {"series": series_out(await podcast.episode_series(e)), "episode": episode_out(e)}


@router.get("/episodes/{id}/playlist")
@router.get("/episodes/{id}/playlist.xspf")
async def episode_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    podcast = ctx.podcast
    e = await podcast.find_episode(id)
    s = await podcast.episode_series(e)
    return await playlist_response(ctx, request, await episode_playlist(ctx, s, e))
