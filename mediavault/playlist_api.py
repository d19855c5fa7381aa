# mediavault/playlist_api.py
"""The active playlist and named user playlists.

PATCH applies a JSON patch, re-resolves references and answers 200 with the
document when its entries changed, 204 when only metadata did.
"""
from __future__ import annotations

import logging
from typing import Any, Tuple

from fastapi import APIRouter, Body, Depends, Response
from fastapi.responses import JSONResponse

from .auth_api import access_context
from .context import RequestContext
from .errors import BadRequest
from .resolve import Resolver
from .spiff import TYPE_MUSIC, Spiff, entries_changed, new_playlist, parse, patch, retype
from .view import playlist_out

log = logging.getLogger("resolve")

router = APIRouter(prefix="/api", tags=["playlists"])

ACTIVE_LOCATION = "/api/playlist"


async def apply_patch(ctx: RequestContext, doc: str, ops: Any) -> Tuple[Spiff, bool]:
    before = parse(doc)
    after = await Resolver(ctx).resolve(patch(before, ops))
    retype(after)
    return after, entries_changed(before, after)


def _patched(s: Spiff, changed: bool) -> Response:
    if not changed:
        return Response(status_code=204)
    return JSONResponse(s.as_dict())


# -------- active playlist --------
async def active_document(ctx: RequestContext) -> str:
    """The user's active playlist; an empty one is created on first use."""
    p = await ctx.music.active_playlist(ctx.name)
    if p.playlist:
        return p.playlist
    doc = new_playlist(TYPE_MUSIC, location=ACTIVE_LOCATION).dumps()
    await ctx.music.save_active_playlist(ctx.name, doc)
    return doc


@router.get("/playlist")
async def playlist_get(ctx: RequestContext = Depends(access_context)):
    return parse(await active_document(ctx)).as_dict()


@router.patch("/playlist")
async def playlist_patch(ops: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    s, changed = await apply_patch(ctx, await active_document(ctx), ops)
    await ctx.music.save_active_playlist(ctx.name, s.dumps())
    return _patched(s, changed)


# -------- named playlists --------
@router.get("/playlists")
async def playlists(ctx: RequestContext = Depends(access_context)):
    return [playlist_out(p) for p in await ctx.music.playlists(ctx.name)]


@router.post("/playlists", status_code=201)
async def playlists_create(body: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    s = parse(body)
    title = s.playlist.title.strip()
    if not title:
        raise BadRequest("missing-title")
    p = await ctx.music.create_playlist(ctx.name, title, s.dumps())
    s.playlist.location = f"/api/playlists/{p.id}/playlist"
    s.playlist.creator = ctx.name
    await Resolver(ctx).resolve(s)
    await ctx.music.save_playlist(p, title, s.dumps())
    log.debug("%s: created playlist %d %s", ctx.name, p.id, title)
    return playlist_out(p)


@router.get("/playlists/{id}")
async def playlists_get(id: str, ctx: RequestContext = Depends(access_context)):
    p = await ctx.music.lookup_playlist(ctx.name, id)
    s = parse(p.playlist)
    return {**playlist_out(p), "type": s.type, "entries": len(s.entries)}


@router.get("/playlists/{id}/playlist")
async def playlists_get_playlist(id: str, ctx: RequestContext = Depends(access_context)):
    p = await ctx.music.lookup_playlist(ctx.name, id)
    return parse(p.playlist).as_dict()


@router.patch("/playlists/{id}/playlist")
async def playlists_patch(id: str, ops: Any = Body(...), ctx: RequestContext = Depends(access_context)):
    p = await ctx.music.lookup_playlist(ctx.name, id)
    s, changed = await apply_patch(ctx, p.playlist, ops)
    await ctx.music.save_playlist(p, s.playlist.title or p.name, s.dumps())
    return _patched(s, changed)


@router.delete("/playlists/{id}", status_code=204)
async def playlists_delete(id: str, ctx: RequestContext = Depends(access_context)):
    p = await ctx.music.lookup_playlist(ctx.name, id)
    await ctx.music.delete_playlist(ctx.name, p.id)
    return Response(status_code=204)
