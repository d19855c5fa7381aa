# mediavault/media.py
"""A media collection: its config, its catalogue database and the services over it.

Media objects are built once per collection name and reused for the life of
the process.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from .bucket import Bucket, FSBucket, S3Bucket, open_media_buckets
from .config import MEDIA_MUSIC, MEDIA_VIDEO, MediaConfig, load_media_config
from .database import get_sessionmaker, init_media_db
from .search import Search

log = logging.getLogger("media")

MUSIC_KEYWORDS = ("artist", "genre", "type", "status", "series", "country", "label")
FILM_KEYWORDS = ("genre", "keyword", "rating", "collection")
TV_KEYWORDS = ("genre", "keyword", "rating", "series")


class Media:
    def __init__(self, config: MediaConfig):
        from .film import Film
        from .music import Music
        from .podcast import Podcasts
        from .tv import TV

        self.config = config
        self.name = config.name
        self.db_url = config.db_url()
        self.music_index = Search(self.db_url, "music", MUSIC_KEYWORDS)
        self.film_index = Search(self.db_url, "film", FILM_KEYWORDS)
        self.tv_index = Search(self.db_url, "tv", TV_KEYWORDS)
        self.podcast_index = Search(self.db_url, "podcast")
        self.music = Music(self)
        self.film = Film(self)
        self.tv = TV(self)
        self.podcast = Podcasts(self)
        self._buckets: Dict[str, List[Bucket]] = {}

    def session(self):
        return get_sessionmaker(self.db_url)()

    async def init(self) -> None:
        await init_media_db(self.db_url)

    # -------- buckets --------
    def buckets(self, media_type: str) -> List[Bucket]:
        if media_type not in self._buckets:
            self._buckets[media_type] = open_media_buckets(self.config.buckets, media_type)
        return self._buckets[media_type]

    def video_buckets(self, media_type: str) -> List[Bucket]:
        """Film and TV buckets; a "video" bucket holds both."""
        return self.buckets(media_type) + self.buckets(MEDIA_VIDEO)

    def bucket_for(self, media_type: str, key: str) -> Optional[Bucket]:
        buckets = self.buckets(media_type) if media_type == MEDIA_MUSIC else self.video_buckets(media_type)
        for b in buckets:
            if isinstance(b, FSBucket) and key.startswith(b.config.fs_root):
                return b
            if isinstance(b, S3Bucket) and key.startswith(b.config.object_prefix):
                return b
        return buckets[0] if buckets else None

    def object_url(self, media_type: str, key: str) -> Tuple[Optional[Bucket], str]:
        b = self.bucket_for(media_type, key)
        if b is None:
            return None, ""
        return b, b.object_url(key)


_media: Dict[str, Media] = {}
_lock = asyncio.Lock()


async def get_media(name: str) -> Media:
    m = _media.get(name)
    if m is not None:
        return m
    async with _lock:
        m = _media.get(name)
        if m is None:
            m = Media(load_media_config(name))
            await m.init()
            _media[name] = m
            log.info("media %s ready (%s)", name, m.db_url)
    return m


def clear_media() -> None:
    global _lock
    _media.clear()
    _lock = asyncio.Lock()
