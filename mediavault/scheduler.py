# mediavault/scheduler.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from . import film_sync, tv_sync
from .auth import Auth
from .config import settings
from .media import Media, get_media
from .music_sync import MusicSync, sync_covers, sync_fanart
from .podcast_sync import sync_podcasts

log = logging.getLogger("scheduler")

MediaJob = Callable[[Media], Awaitable[object]]


@dataclass
class Job:
    name: str
    minutes: int
    run: Callable[[], Awaitable[None]]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


# -------- per-collection work --------
async def _music_sync(media: Media):
    return await MusicSync(media).run()


async def _music_popular(media: Media):
    return await MusicSync(media).run_popular()


async def _music_similar(media: Media):
    return await MusicSync(media).run_similar()


async def _music_covers(media: Media):
    return await sync_covers(media) + await sync_fanart(media)


async def _housekeeping(auth: Auth) -> None:
    sessions = await auth.delete_expired_sessions()
    codes = await auth.delete_expired_codes()
    if sessions or codes:
        log.info("housekeeping: %d sessions, %d codes removed", sessions, codes)


def each_media(auth: Auth, name: str, fn: MediaJob) -> Callable[[], Awaitable[None]]:
    """Run `fn` once for every media collection assigned to some user."""
    async def run() -> None:
        for media_name in await auth.assigned_media():
            try:
                media = await get_media(media_name)
                result = await fn(media)
                log.info("%s %s: %s", name, media_name, result)
            except Exception as e:
                log.warning("%s %s failed: %s", name, media_name, e)
    return run


def build_jobs(auth: Auth) -> Dict[str, Job]:
    media_jobs = [
        ("music", settings.MUSIC_SYNC_INTERVAL, _music_sync),
        ("music-popular", settings.MUSIC_POPULAR_SYNC_INTERVAL, _music_popular),
        ("music-similar", settings.MUSIC_SIMILAR_SYNC_INTERVAL, _music_similar),
        ("music-covers", settings.MUSIC_COVER_SYNC_INTERVAL, _music_covers),
        ("film", settings.FILM_SYNC_INTERVAL, film_sync.sync_film),
        ("film-posters", settings.FILM_POSTER_SYNC_INTERVAL, film_sync.sync_posters),
        ("film-backdrops", settings.FILM_BACKDROP_SYNC_INTERVAL, film_sync.sync_backdrops),
        ("tv", settings.TV_SYNC_INTERVAL, tv_sync.sync_tv),
        ("tv-posters", settings.TV_POSTER_SYNC_INTERVAL, tv_sync.sync_posters),
        ("tv-backdrops", settings.TV_BACKDROP_SYNC_INTERVAL, tv_sync.sync_backdrops),
        ("tv-stills", settings.TV_STILL_SYNC_INTERVAL, tv_sync.sync_stills),
        ("podcast", settings.PODCAST_SYNC_INTERVAL, sync_podcasts),
    ]
    jobs = {name: Job(name, minutes, each_media(auth, name, fn)) for name, minutes, fn in media_jobs}
    jobs["housekeeping"] = Job("housekeeping", settings.HOUSEKEEPING_INTERVAL, lambda: _housekeeping(auth))
    return jobs


async def run_job(name: str, auth: Optional[Auth] = None, jobs: Optional[Dict[str, Job]] = None) -> None:
    """Run one job now; a run already in progress is waited for, not overlapped."""
    jobs = jobs or build_jobs(auth or Auth())
    job = jobs.get(name)
    if job is None:
        raise KeyError(f"unknown job '{name}', expected one of: {', '.join(sorted(jobs))}")
    async with job.lock:
        log.info("job %s started", name)
        await job.run()
        log.info("job %s finished", name)


async def _job_loop(job: Job) -> None:
    # first run after one interval
    while True:
        await asyncio.sleep(job.minutes * 60)
        if job.lock.locked():
            log.info("job %s still running, skipped", job.name)
            continue
        try:
            async with job.lock:
                await job.run()
        except Exception as e:
            logging.getLogger("scheduler").warning("job %s error: %s", job.name, e)


def start_scheduler(app) -> List[asyncio.Task]:
    jobs = build_jobs(app.state.auth)
    app.state.jobs = jobs
    tasks = [asyncio.create_task(_job_loop(j), name=f"job-{j.name}") for j in jobs.values()]
    app.state.scheduler_tasks = tasks
    return tasks


async def stop_scheduler(app) -> None:
    tasks = getattr(app.state, "scheduler_tasks", [])
    for t in tasks:
        t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
