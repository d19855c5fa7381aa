# mediavault/view.py
"""JSON views: row serializers, playlist builders and the composite views
(home, index, search) the routers return."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from .activity import ActivityArtist, ActivityMovie, ActivityRelease, ActivityTrack
from .context import RequestContext
from .dates import json_date, local_now
from .film import backdrop, movie_location, poster, poster_small, profile_image
from .media_models import (
    Artist, Episode, Movie, Person, Playlist, Release, Series, Station, Track, TVEpisode, TVSeries,
)
from .models import Offset
from .music import cover, track_location
from .podcast import episode_location
from .resolve import Resolver, creators, track_entries, xspf
from .spiff import TYPE_MUSIC, TYPE_PODCAST, TYPE_VIDEO, XSPF_CONTENT_TYPE, Entry, Spiff, new_playlist
from .tv import episode_code, episode_still, series_backdrop, series_poster
from .tv import episode_location as tv_episode_location


# =======================
# Music
# =======================

def artist_out(a: Artist, image: str = "", background: str = "") -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "sort_name": a.sort_name,
        "arid": a.arid,
        "disambiguation": a.disambiguation,
        "country": a.country,
        "area": a.area,
        "genre": a.genre,
        "date": json_date(a.date),
        "end_date": json_date(a.end_date),
        "image": image,
        "background": background,
    }


def release_out(r: Release) -> Dict[str, Any]:
    return {
        "id": r.id,
        "artist": r.artist,
        "name": r.name,
        "sort_name": r.sort_name,
        "type": r.type,
        "secondary_types": [t for t in r.secondary_types.split(",") if t],
        "disambiguation": r.disambiguation,
        "reid": r.reid,
        "rgid": r.rgid,
        "country": r.country,
        "date": json_date(r.date),
        "release_date": json_date(r.release_date),
        "track_count": r.track_count,
        "disc_count": r.disc_count,
        "image": cover(r),
    }


def track_out(t: Track) -> Dict[str, Any]:
    return {
        "id": t.id,
        "uuid": t.uuid,
        "artist": t.artist,
        "release": t.release,
        "date": t.date,
        "title": t.title,
        "track_num": t.track_num,
        "disc_num": t.disc_num,
        "track_count": t.track_count,
        "disc_count": t.disc_count,
        "track_artist": t.track_artist,
        "release_title": t.release_title,
        "media_title": t.media_title,
        "release_date": json_date(t.release_date),
        "rid": t.rid,
        "rgid": t.rgid,
        "reid": t.reid,
        "size": t.size,
        "etag": t.etag,
        "image": cover(t),
        "location": track_location(t),
    }


def station_out(s: Station) -> Dict[str, Any]:
    return {
        "id": s.id,
        "name": s.name,
        "type": s.type,
        "shared": s.shared,
        "creator": s.creator,
        "image": s.image,
        "description": s.description,
        "ref": s.ref,
    }


def playlist_out(p: Playlist) -> Dict[str, Any]:
    return {"id": p.id, "name": p.name, "created": json_date(p.created_at), "updated": json_date(p.updated_at)}


# =======================
# Video
# =======================

def movie_out(m: Movie) -> Dict[str, Any]:
    return {
        "id": m.id,
        "uuid": m.uuid,
        "tmid": m.tmid,
        "imid": m.imid,
        "title": m.title,
        "sort_title": m.sort_title,
        "original_title": m.original_title,
        "date": json_date(m.date),
        "rating": m.rating,
        "runtime": m.runtime,
        "overview": m.overview,
        "tagline": m.tagline,
        "vote_average": m.vote_average,
        "vote_count": m.vote_count,
        "budget": m.budget,
        "revenue": m.revenue,
        "poster": poster(m),
        "poster_small": poster_small(m),
        "backdrop": backdrop(m),
        "size": m.size,
        "etag": m.etag,
        "location": movie_location(m),
    }


def person_out(p: Person) -> Dict[str, Any]:
    return {
        "peid": p.peid,
        "name": p.name,
        "bio": p.bio,
        "birthplace": p.birthplace,
        "birthday": json_date(p.birthday),
        "deathday": json_date(p.deathday),
        "image": profile_image(p),
    }


def cast_out(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"character": r["cast"].character, "rank": r["cast"].rank, "person": person_out(r["person"])}
            for r in rows]


def crew_out(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"department": r["crew"].department, "job": r["crew"].job, "person": person_out(r["person"])}
            for r in rows]


def tv_series_out(s: TVSeries) -> Dict[str, Any]:
    return {
        "id": s.id,
        "tvid": s.tvid,
        "name": s.name,
        "sort_name": s.sort_name,
        "date": json_date(s.date),
        "end_date": json_date(s.end_date),
        "overview": s.overview,
        "tagline": s.tagline,
        "rating": s.rating,
        "vote_average": s.vote_average,
        "season_count": s.season_count,
        "episode_count": s.episode_count,
        "status": s.status,
        "poster": series_poster(s),
        "backdrop": series_backdrop(s),
    }


def tv_episode_out(e: TVEpisode) -> Dict[str, Any]:
    return {
        "id": e.id,
        "uuid": e.uuid,
        "tvid": e.tvid,
        "season": e.season,
        "episode": e.episode,
        "code": episode_code(e),
        "name": e.name,
        "overview": e.overview,
        "date": json_date(e.date),
        "runtime": e.runtime,
        "vote_average": e.vote_average,
        "still": episode_still(e),
        "size": e.size,
        "etag": e.etag,
        "location": tv_episode_location(e),
    }


# =======================
# Podcasts
# =======================

def series_out(s: Series) -> Dict[str, Any]:
    return {
        "id": s.id,
        "sid": s.sid,
        "title": s.title,
        "author": s.author,
        "description": s.description,
        "link": s.link,
        "image": s.image,
        "copyright": s.copyright,
        "date": json_date(s.date),
    }


def episode_out(e: Episode) -> Dict[str, Any]:
    return {
        "id": e.id,
        "sid": e.sid,
        "eid": e.eid,
        "title": e.title,
        "author": e.author,
        "description": e.description,
        "link": e.link,
        "image": e.image,
        "content_type": e.content_type,
        "size": e.size,
        "date": json_date(e.date),
        "location": episode_location(e),
    }


# =======================
# Activity and progress
# =======================

def activity_track_out(a: ActivityTrack) -> Dict[str, Any]:
    return {"date": json_date(a.date), "count": a.count, "track": track_out(a.track)}


def activity_movie_out(a: ActivityMovie) -> Dict[str, Any]:
    return {"date": json_date(a.date), "count": a.count, "movie": movie_out(a.movie)}


def activity_release_out(a: ActivityRelease) -> Dict[str, Any]:
    return {"date": json_date(a.date), "count": a.count, "release": release_out(a.release)}


def activity_artist_out(a: ActivityArtist) -> Dict[str, Any]:
    return {"name": a.name, "count": a.count}


def offset_out(o: Offset) -> Dict[str, Any]:
    return {"id": o.id, "etag": o.etag, "offset": o.offset, "duration": o.duration, "date": json_date(o.date)}


# =======================
# Playlists
# =======================

async def ref_playlist(ctx: RequestContext, ref: str, type: str = TYPE_MUSIC, **body: Any) -> Spiff:
    """A playlist holding one reference, resolved."""
    s = new_playlist(type, date=json_date(local_now()), **body)
    s.playlist.entry = [Entry(ref=ref)]
    return await Resolver(ctx).resolve(s)


async def artist_playlist(ctx: RequestContext, a: Artist, res: str) -> Spiff:
    return await ref_playlist(
        ctx, f"/music/artists/{a.id}/{res}",
        title=f"{a.name} • {res.title()}", creator=a.name,
        image=await ctx.music.artist_image(a), location=f"/api/artists/{a.id}/{res}/playlist")


async def release_playlist(ctx: RequestContext, r: Release) -> Spiff:
    return await ref_playlist(
        ctx, f"/music/releases/{r.id}/tracks",
        title=r.name, creator=r.artist, image=cover(r), location=f"/api/releases/{r.id}/playlist")


async def track_playlist(ctx: RequestContext, t: Track) -> Spiff:
    return await ref_playlist(
        ctx, f"/music/tracks/{t.id}",
        title=t.title, creator=t.preferred_artist, image=cover(t), location=f"/api/tracks/{t.id}/playlist")


async def station_playlist(ctx: RequestContext, s: Station) -> Spiff:
    return await Resolver(ctx).refresh_station(s)


async def movie_playlist(ctx: RequestContext, m: Movie) -> Spiff:
    return await ref_playlist(
        ctx, f"/movies/{m.id}", TYPE_VIDEO,
        title=m.title, creator="Movie", image=poster(m), location=f"/api/movies/{m.id}/playlist")


async def series_playlist(ctx: RequestContext, s: Series) -> Spiff:
    return await ref_playlist(
        ctx, f"/podcasts/series/{s.id}", TYPE_PODCAST,
        title=s.title, creator=s.author, image=s.image, location=f"/api/series/{s.id}/playlist")


async def episode_playlist(ctx: RequestContext, s: Series, e: Episode) -> Spiff:
    return await ref_playlist(
        ctx, f"/podcasts/episodes/{e.id}", TYPE_PODCAST,
        title=e.title, creator=e.author or s.author, image=e.image or s.image,
        location=f"/api/episodes/{e.id}/playlist")


async def playlist_response(ctx: RequestContext, request: Request, s: Spiff) -> Response:
    """JSON, or XSPF with direct media URLs when the path ends in .xspf."""
    if request.url.path.endswith(".xspf"):
        return Response(await xspf(ctx, s), media_type=XSPF_CONTENT_TYPE)
    return JSONResponse(s.as_dict())


def tracks_playlist(title: str, location: str, tracks: List[Track]) -> Spiff:
    """Concrete playlist of `tracks`, e.g. for activity views."""
    s = new_playlist(TYPE_MUSIC, title=title, creator=creators(tracks),
                     image=cover(tracks[0]) if tracks else "",
                     location=location, date=json_date(local_now()))
    s.playlist.entry = track_entries(tracks)
    return s


# =======================
# Composite views
# =======================

async def home_view(ctx: RequestContext) -> Dict[str, Any]:
    music, film, tv, podcast = ctx.music, ctx.film, ctx.tv, ctx.podcast
    recent = await ctx.activity.recent_tracks(ctx.name, ctx.media)
    return {
        "added_releases": [release_out(r) for r in await music.recently_added()],
        "new_releases": [release_out(r) for r in await music.recently_released()],
        "added_movies": [movie_out(m) for m in await film.recently_added()],
        "new_movies": [movie_out(m) for m in await film.recently_released()],
        "recommend_movies": [
            {"name": r["name"], "movies": [movie_out(m) for m in r["movies"]]}
            for r in await film.recommend()
        ],
        "added_tv_episodes": [tv_episode_out(e) for e in await tv.recently_added()],
        "new_tv_episodes": [tv_episode_out(e) for e in await tv.recently_aired()],
        "new_episodes": [episode_out(e) for e in await podcast.recent_episodes()],
        "recent_tracks": [activity_track_out(a) for a in recent],
    }


async def index_view(ctx: RequestContext) -> Dict[str, Any]:
    music = ctx.music
    return {
        "time": int(local_now().timestamp() * 1000),
        "counts": await music.counts(),
        "artists": [artist_out(a) for a in await music.artists()],
        "stations": [station_out(s) for s in await music.stations(ctx.name)],
        "movies": [movie_out(m) for m in await ctx.film.movies()],
        "tv_series": [tv_series_out(s) for s in await ctx.tv.series_list()],
        "series": [series_out(s) for s in await ctx.podcast.series_list()],
    }


async def search_view(ctx: RequestContext, q: str, limit: Optional[int] = None) -> Dict[str, Any]:
    """Name matches plus search-index hits for tracks, movies and episodes."""
    music = await ctx.music.query(q, ctx.name)
    tracks = await ctx.music.search(q, limit) or music["tracks"]
    tv = await ctx.tv.query(q)
    podcasts = await ctx.podcast.query(q)
    return {
        "query": q,
        "artists": [artist_out(a) for a in music["artists"]],
        "releases": [release_out(r) for r in music["releases"]],
        "stations": [station_out(s) for s in music["stations"]],
        "tracks": [track_out(t) for t in tracks],
        "movies": [movie_out(m) for m in await ctx.film.search(q, limit) or await ctx.film.query(q)],
        "tv_series": [tv_series_out(s) for s in tv["series"]],
        "tv_episodes": [tv_episode_out(e) for e in await ctx.tv.search(q, limit) or tv["episodes"]],
        "series": [series_out(s) for s in podcasts["series"]],
        "episodes": [episode_out(e) for e in await ctx.podcast.search(q, limit) or podcasts["episodes"]],
    }
