# mediavault/music_api.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response

from .auth_api import access_context
from .context import RequestContext
from .errors import NotFound
from .media_models import Artist, StationType
from .resolve import Resolver
from .spiff import parse, patch
from .view import (
    artist_out, artist_playlist, playlist_response, release_out, release_playlist,
    station_out, station_playlist, track_out, track_playlist,
)

log = logging.getLogger("music")

router = APIRouter(prefix="/api", tags=["music"])

ARTIST_PLAYLISTS = ("deep", "popular", "radio", "similar", "shuffle", "playlist", "singles", "tracks")


async def artist_view(ctx: RequestContext, a: Artist) -> Dict[str, Any]:
    music = ctx.music
    releases = await music.artist_releases(a)
    return {
        "artist": artist_out(a, await music.artist_image(a), await music.artist_background(a)),
        "releases": [release_out(r) for r in releases],
        "popular": [track_out(t) for t in await music.artist_popular_tracks(a, 5)],
        "singles": [track_out(t) for t in await music.artist_singles(a, 5)],
        "similar": [artist_out(s) for s in await music.similar_artists(a)],
    }


# -------- artists --------
@router.get("/artists")
async def artists(ctx: RequestContext = Depends(access_context)):
    return [artist_out(a) for a in await ctx.music.artists()]


@router.get("/artists/{id}")
async def artist_get(id: str, ctx: RequestContext = Depends(access_context)):
    return await artist_view(ctx, await ctx.music.find_artist(id))


@router.get("/artists/{id}/{res}")
async def artist_resource(id: str, res: str, request: Request, ctx: RequestContext = Depends(access_context)):
    music = ctx.music
    a = await music.find_artist(id)
    if res == "popular":
        return {"artist": artist_out(a), "tracks": [track_out(t) for t in await music.artist_popular_tracks(a)]}
    if res == "singles":
        return {"artist": artist_out(a), "tracks": [track_out(t) for t in await music.artist_singles(a)]}
    if res == "deep":
        return {"artist": artist_out(a), "tracks": [track_out(t) for t in await music.artist_deep(a)]}
    if res == "tracks":
        return {"artist": artist_out(a), "tracks": [track_out(t) for t in await music.artist_tracks(a)]}
    if res == "similar":
        return {"artist": artist_out(a), "artists": [artist_out(s) for s in await music.similar_artists(a)]}
    if res == "playlist":
        return await playlist_response(ctx, request, await artist_playlist(ctx, a, "playlist"))
    raise NotFound()


@router.get("/artists/{id}/{res}/playlist")
@router.get("/artists/{id}/{res}/playlist.xspf")
async def artist_playlist_get(id: str, res: str, request: Request, ctx: RequestContext = Depends(access_context)):
    if res not in ARTIST_PLAYLISTS:
        raise NotFound()
    a = await ctx.music.find_artist(id)
    return await playlist_response(ctx, request, await artist_playlist(ctx, a, res))


# -------- releases and tracks --------
@router.get("/releases/{id}")
async def release_get(id: str, ctx: RequestContext = Depends(access_context)):
    music = ctx.music
    r = await music.find_release(id)
    a = await music.artist_by_name(r.artist)
    return {
        "artist": artist_out(a) if a else None,
        "release": release_out(r),
        "tracks": [track_out(t) for t in await music.release_tracks(r)],
        "media": [{"name": m.name, "position": m.position, "format": m.format, "track_count": m.track_count}
                  for m in await music.release_media(r.reid)],
        "popular": [track_out(t) for t in await music.release_popular(r)],
        "singles": [track_out(t) for t in await music.release_singles(r)],
        "similar": [release_out(s) for s in await music.similar_releases(a, r)] if a else [],
    }


@router.get("/releases/{id}/playlist")
@router.get("/releases/{id}/playlist.xspf")
async def release_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    r = await ctx.music.find_release(id)
    return await playlist_response(ctx, request, await release_playlist(ctx, r))


@router.get("/tracks/{id}/playlist")
@router.get("/tracks/{id}/playlist.xspf")
async def track_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    t = await ctx.music.find_track(id)
    return await playlist_response(ctx, request, await track_playlist(ctx, t))


# =======================
# Radio
# =======================

@router.get("/radio")
async def radio(ctx: RequestContext = Depends(access_context)):
    """Visible stations grouped by type."""
    out: Dict[str, list] = {t.value: [] for t in StationType}
    for s in await ctx.music.stations(ctx.name):
        out.setdefault(s.type, []).append(station_out(s))
    return out


def _station_fields(body: Dict[str, Any]):
    name = (body.get("name") or body.get("Name") or "").strip()
    ref = (body.get("ref") or body.get("Ref") or "").strip()
    if not name or not ref:
        raise HTTPException(400, "name and ref are required")
    return name, ref


@router.post("/radio", status_code=201)
async def radio_create(body: Dict[str, Any] = Body(...), ctx: RequestContext = Depends(access_context)):
    name, ref = _station_fields(body)
    playlist: Optional[str] = None
    if ref == "/api/playlist":
        # copy of the active playlist
        playlist = (await ctx.music.active_playlist(ctx.name)).playlist or None
    s = await ctx.music.create_station(ctx.name, body.get("type") or StationType.other.value, name, ref,
                                       creator=body.get("creator") or ctx.name, image=body.get("image") or "")
    if playlist:
        await ctx.music.save_station_playlist(s, playlist)
    return station_out(s)


@router.get("/radio/{id}")
@router.get("/stations/{id}")
async def station_get(id: str, ctx: RequestContext = Depends(access_context)):
    s = await ctx.music.lookup_station(ctx.name, id)
    plist = await station_playlist(ctx, s)
    await ctx.music.save_station_playlist(s, plist.dumps())
    return plist.as_dict()


@router.get("/radio/{id}/playlist")
@router.get("/radio/{id}/playlist.xspf")
@router.get("/stations/{id}/playlist")
@router.get("/stations/{id}/playlist.xspf")
async def station_playlist_get(id: str, request: Request, ctx: RequestContext = Depends(access_context)):
    s = await ctx.music.lookup_station(ctx.name, id)
    return await playlist_response(ctx, request, await station_playlist(ctx, s))


@router.put("/radio/{id}", status_code=204)
async def station_put(id: str, body: Dict[str, Any] = Body(...), ctx: RequestContext = Depends(access_context)):
    s = await ctx.music.lookup_station(ctx.name, id)
    if s.user != ctx.name:
        raise NotFound("station-not-found")
    name, ref = _station_fields(body)
    playlist = body.get("playlist")
    if isinstance(playlist, dict):
        playlist = parse(playlist).dumps()
    await ctx.music.update_station(s, name, ref, playlist or s.playlist)
    return Response(status_code=204)


@router.patch("/radio/{id}", status_code=204)
async def station_patch(id: str, ops: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    s = await ctx.music.lookup_station(ctx.name, id)
    if s.user != ctx.name:
        raise NotFound("station-not-found")
    plist = await Resolver(ctx).resolve(patch(parse(s.playlist or "{}"), ops))
    await ctx.music.save_station_playlist(s, plist.dumps())
    return Response(status_code=204)


@router.delete("/radio/{id}", status_code=204)
async def station_delete(id: str, ctx: RequestContext = Depends(access_context)):
    s = await ctx.music.lookup_station(ctx.name, id)
    await ctx.music.delete_station(ctx.name, s.id)
    return Response(status_code=204)
