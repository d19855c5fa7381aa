# mediavault/activity_api.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from .activity import parse_events
from .auth_api import access_context
from .context import RequestContext
from .dates import DateRange, interval, is_zero, start_end, ymd
from .progress import INSERTED, UPDATED, parse_offsets
from .resolve import Resolver, movie_entry
from .spiff import TYPE_MUSIC, TYPE_VIDEO, Entry, new_playlist
from .view import (
    activity_artist_out, activity_movie_out, activity_release_out, activity_track_out,
    offset_out, tracks_playlist,
)

log = logging.getLogger("activity")

router = APIRouter(prefix="/api", tags=["activity"])


def window(res: str = "recent", start: str = "", end: str = "") -> DateRange:
    """The named interval, unless ?start= or ?end= is given."""
    if start or end:
        return start_end(start, end)
    dr = interval(res)
    if is_zero(dr.end):
        raise HTTPException(400, f"invalid interval '{res}'")
    return dr


# =======================
# Activity
# =======================

@router.get("/activity")
async def activity(start: str = "", end: str = "", ctx: RequestContext = Depends(access_context)):
    a, dr = ctx.activity, window("recent", start, end)
    return {
        "tracks": [activity_track_out(t) for t in await a.tracks(ctx.name, ctx.media, dr)],
        "movies": [activity_movie_out(m) for m in await a.movies(ctx.name, ctx.media, dr)],
        "releases": [activity_release_out(r) for r in await a.releases(ctx.name, ctx.media, dr)],
    }


@router.post("/activity", status_code=204)
async def activity_post(payload: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    events = parse_events(payload)
    if len(events):
        await ctx.activity.create_events(ctx.name, ctx.media, events)
    return Response(status_code=204)


# -------- tracks --------
@router.get("/activity/tracks")
async def activity_tracks(start: str = "", end: str = "", ctx: RequestContext = Depends(access_context)):
    dr = window("recent", start, end)
    return {"tracks": [activity_track_out(t) for t in await ctx.activity.tracks(ctx.name, ctx.media, dr)]}


@router.get("/activity/tracks/{res}")
async def activity_tracks_res(res: str, start: str = "", end: str = "",
                              ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    return {
        "interval": {"start": ymd(dr.start), "end": ymd(dr.end)},
        "tracks": [activity_track_out(t) for t in await ctx.activity.popular_tracks(ctx.name, ctx.media, dr)],
    }


@router.get("/activity/tracks/{res}/playlist")
async def activity_tracks_playlist(res: str, start: str = "", end: str = "",
                                   ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    tracks = [t.track for t in await ctx.activity.popular_tracks(ctx.name, ctx.media, dr)]
    return tracks_playlist(f"Top Tracks ({res})", f"/api/activity/tracks/{res}/playlist", tracks).as_dict()


@router.get("/activity/tracks/{res}/stats")
async def activity_tracks_stats(res: str, start: str = "", end: str = "",
                                ctx: RequestContext = Depends(access_context)):
    stats = await ctx.activity.track_stats(ctx.name, ctx.media, window(res, start, end))
    return {
        "interval": stats["interval"],
        "artists": [activity_artist_out(a) for a in stats["artists"]],
        "releases": [activity_release_out(r) for r in stats["releases"]],
        "tracks": [activity_track_out(t) for t in stats["tracks"]],
    }


@router.get("/activity/tracks/{res}/counts")
async def activity_tracks_counts(res: str, start: str = "", end: str = "",
                                 ctx: RequestContext = Depends(access_context)):
    dr = await ctx.activity.listened_range(ctx.name, window(res, start, end))
    if dr.is_year() or dr.month_count() > 2:
        rows = await ctx.activity.track_month_counts(ctx.name, dr)
    else:
        rows = await ctx.activity.track_day_counts(ctx.name, dr)
    return {"counts": [{"date": ymd(d), "count": n} for d, n in rows]}


@router.get("/activity/tracks/{res}/chart")
async def activity_tracks_chart(res: str, start: str = "", end: str = "",
                                ctx: RequestContext = Depends(access_context)):
    return await ctx.activity.chart(ctx.name, window(res, start, end))


# -------- movies --------
@router.get("/activity/movies")
async def activity_movies(start: str = "", end: str = "", ctx: RequestContext = Depends(access_context)):
    dr = window("recent", start, end)
    return {"movies": [activity_movie_out(m) for m in await ctx.activity.movies(ctx.name, ctx.media, dr)]}


@router.get("/activity/movies/{res}")
async def activity_movies_res(res: str, start: str = "", end: str = "",
                              ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    return {"movies": [activity_movie_out(m) for m in await ctx.activity.popular_movies(ctx.name, ctx.media, dr)]}


@router.get("/activity/movies/{res}/playlist")
async def activity_movies_playlist(res: str, start: str = "", end: str = "",
                                   ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    movies = [m.movie for m in await ctx.activity.popular_movies(ctx.name, ctx.media, dr)]
    s = new_playlist(TYPE_VIDEO, title=f"Top Movies ({res})", creator="Movies",
                     location=f"/api/activity/movies/{res}/playlist")
    s.playlist.entry = [movie_entry(m) for m in movies]
    return s.as_dict()


# -------- releases --------
@router.get("/activity/releases")
async def activity_releases(start: str = "", end: str = "", ctx: RequestContext = Depends(access_context)):
    dr = window("recent", start, end)
    return {"releases": [activity_release_out(r) for r in await ctx.activity.releases(ctx.name, ctx.media, dr)]}


@router.get("/activity/releases/{res}")
async def activity_releases_res(res: str, start: str = "", end: str = "",
                                ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    releases = await ctx.activity.popular_releases(ctx.name, ctx.media, dr)
    return {"releases": [activity_release_out(r) for r in releases]}


@router.get("/activity/releases/{res}/playlist")
async def activity_releases_playlist(res: str, start: str = "", end: str = "",
                                     ctx: RequestContext = Depends(access_context)):
    dr = window(res, start, end)
    releases = await ctx.activity.popular_releases(ctx.name, ctx.media, dr)
    s = new_playlist(TYPE_MUSIC, title=f"Top Releases ({res})",
                     location=f"/api/activity/releases/{res}/playlist")
    s.playlist.entry = [Entry(ref=f"/music/releases/{r.release.reid}/tracks") for r in releases]
    return (await Resolver(ctx).resolve(s)).as_dict()


# =======================
# Progress
# =======================

@router.get("/progress")
async def progress(ctx: RequestContext = Depends(access_context)):
    return {"offsets": [offset_out(o) for o in await ctx.progress.offsets(ctx.name)]}


@router.post("/progress", status_code=204)
async def progress_post(payload: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    for o in parse_offsets(payload):
        result = await ctx.progress.update(ctx.name, o)
        if result not in (INSERTED, UPDATED):
            log.debug("%s: offset %s %s", ctx.name, o.etag, result)
    return Response(status_code=204)


@router.delete("/progress/{id}", status_code=204)
async def progress_delete(id: int, ctx: RequestContext = Depends(access_context)):
    await ctx.progress.delete(ctx.name, id)
    return Response(status_code=204)
