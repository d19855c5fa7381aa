# mediavault/podcast_sync.py
"""Podcast ingestion from the configured RSS feeds."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from sqlalchemy import delete, select

from .client import Getter
from .errors import IngestError
from .media import Media
from .media_models import Episode, Series
from .rss import RSS, Podcast
from .search import FieldMap, add_field
from .utils import md5_hex

log = logging.getLogger("sync")


def series_id(p: Podcast) -> str:
    if not p.link:
        raise IngestError(message=f"podcast '{p.title}' has no link")
    return md5_hex(p.link)


def episode_fields(s: Series, e: Episode) -> FieldMap:
    fields: FieldMap = {}
    add_field(fields, "author", e.author or s.author)
    add_field(fields, "series", s.title)
    add_field(fields, "title", e.title)
    add_field(fields, "description", e.description)
    if e.date:
        add_field(fields, "date", e.date)
    return fields


async def sync_feed(media: Media, p: Podcast) -> Dict[str, int]:
    """Store the series and its episodes; episodes gone from the feed are removed."""
    sid = series_id(p)
    counts = {"added": 0, "removed": 0}
    async with media.session() as db:
        s = (await db.execute(select(Series).where(Series.sid == sid))).scalars().first()
        if s is None:
            s = Series(sid=sid)
            db.add(s)
        s.title = p.title
        s.author = p.author
        s.description = p.description
        s.link = p.link
        s.image = p.image
        s.copyright = p.copyright
        s.date = p.last_build_time
        s.ttl = p.ttl

        current = {e.guid: e for e in p.episodes if e.guid}
        stored = {e.eid: e for e in (await db.execute(select(Episode).where(Episode.sid == sid))).scalars().all()}
        gone = [eid for eid in stored if eid not in current]
        if gone:
            await db.execute(delete(Episode).where(Episode.eid.in_(gone)))
            counts["removed"] = len(gone)

        docs: Dict[str, FieldMap] = {}
        for eid, fe in current.items():
            e = stored.get(eid)
            if e is None:
                # the same guid can appear in another series' feed
                e = (await db.execute(select(Episode).where(Episode.eid == eid))).scalars().first()
            if e is None:
                e = Episode(eid=eid)
                db.add(e)
                counts["added"] += 1
            e.sid = sid
            e.title = fe.title
            e.author = fe.author
            e.description = fe.description
            e.link = fe.link
            e.url = fe.url
            e.image = fe.image
            e.content_type = fe.content_type
            e.size = fe.size
            e.date = fe.publish_time
            docs[eid] = episode_fields(s, e)
        await db.commit()

    if gone:
        await media.podcast_index.delete(gone)
    await media.podcast_index.index(docs)
    return counts


async def sync_podcasts(media: Media, rss: Optional[RSS] = None) -> Dict[str, int]:
    counts = {"series": 0, "added": 0, "removed": 0, "errors": 0}
    rss = rss or RSS(Getter())
    for url in media.config.podcast.series:
        p = await asyncio.to_thread(rss.fetch_podcast, url)
        if p is None:
            counts["errors"] += 1
            continue
        try:
            c = await sync_feed(media, p)
        except IngestError as e:
            log.warning("podcast %s: %s", url, e)
            counts["errors"] += 1
            continue
        counts["series"] += 1
        counts["added"] += c["added"]
        counts["removed"] += c["removed"]
    log.info("podcast sync %s: %s", media.name, counts)
    return counts
