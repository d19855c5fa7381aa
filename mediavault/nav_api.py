# mediavault/nav_api.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse

from .auth_api import access_context, media_context
from .context import RequestContext
from .errors import NotFound
from .images import upstream_url
from .resolve import locate
from .view import home_view, index_view, search_view

router = APIRouter(tags=["nav"])


@router.get("/api/home")
async def home(ctx: RequestContext = Depends(access_context)):
    return await home_view(ctx)


@router.get("/api/index")
async def index(ctx: RequestContext = Depends(access_context)):
    return await index_view(ctx)


@router.get("/api/search")
async def search(q: str = "", limit: Optional[int] = None, ctx: RequestContext = Depends(access_context)):
    q = q.strip()
    if not q:
        raise HTTPException(400, "missing query")
    return await search_view(ctx, q, limit)


# -------- media locations --------
async def _location(request: Request, ctx: RequestContext) -> Response:
    # media tokens are short lived; hand out a direct URL and let the client go there
    path = request.url.path
    url = await locate(ctx, path)
    if not url or url == path:
        raise NotFound()
    return RedirectResponse(url=url, status_code=307)


@router.get("/api/tracks/{uuid}/location")
async def track_location(uuid: str, request: Request, ctx: RequestContext = Depends(media_context)):
    return await _location(request, ctx)


@router.get("/api/movies/{uuid}/location")
async def movie_location(uuid: str, request: Request, ctx: RequestContext = Depends(media_context)):
    return await _location(request, ctx)


@router.get("/api/episodes/{id}/location")
async def episode_location(id: int, request: Request, ctx: RequestContext = Depends(media_context)):
    return await _location(request, ctx)


@router.get("/api/tv/episodes/{uuid}/location")
async def tv_episode_location(uuid: str, request: Request, ctx: RequestContext = Depends(media_context)):
    return await _location(request, ctx)


# -------- artwork --------
@router.get("/img/{path:path}")
async def image(path: str, ctx: RequestContext = Depends(access_context)):
    """Cached artwork; a miss redirects to the catalogue so the client still gets an image."""
    url = upstream_url(f"/img/{path}")
    if not url:
        raise NotFound()
    hit = ctx.images.get(url)
    if hit is None:
        return RedirectResponse(url=url, status_code=307)
    data, ctype = hit
    return Response(content=data, media_type=ctype, headers={"Cache-Control": "public, max-age=86400"})
