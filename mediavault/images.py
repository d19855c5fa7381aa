# mediavault/images.py
"""Local image cache for catalogue artwork.

Two roles share one directory: the writer (used by the image sync jobs) fetches
upstream and stores the bytes; the reader (used by /img routes) only looks at
what is already cached and never goes upstream.
"""
from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from typing import Optional, Tuple

from .client import Getter
from .config import settings
from .utils import md5_hex

log = logging.getLogger("sync")

COVER_ART_PREFIX = "https://coverartarchive.org"
TMDB_PREFIX = "https://image.tmdb.org"
FANART_PREFIX = "https://assets.fanart.tv/fanart"


def upstream_url(path: str) -> str:
    """Map a local /img path to the catalogue URL it stands for.

    /img/mb/re/<reid>/<file>    release cover
    /img/mb/rg/<rgid>/<file>    release group cover
    /img/fa/<arid>/t/<file>     artist thumb
    /img/fa/<arid>/b/<file>     artist background
    /img/tm/<size>/<file>       TMDB poster, backdrop, still or profile
    """
    parts = path.strip("/").split("/")
    if len(parts) < 2 or parts[0] != "img":
        return ""
    kind, rest = parts[1], parts[2:]
    if kind == "mb" and len(rest) == 3 and rest[0] in ("re", "rg"):
        group = "release-group" if rest[0] == "rg" else "release"
        return f"{COVER_ART_PREFIX}/{group}/{rest[1]}/{rest[2]}"
    if kind == "fa" and len(rest) == 3 and rest[1] in ("t", "b"):
        folder = "artistbackground" if rest[1] == "b" else "artistthumb"
        return f"{FANART_PREFIX}/music/{rest[0]}/{folder}/{rest[2]}"
    if kind == "tm" and len(rest) == 2:
        return f"{TMDB_PREFIX}/t/p/{rest[0]}/{rest[1]}"
    return ""


def cache_dir() -> Path:
    return Path(settings.IMAGE_CACHE_DIR or os.path.join(settings.DATA_DIR, "imagecache"))


class ImageCache:
    def __init__(self, directory: Optional[Path] = None, getter: Optional[Getter] = None,
                 cache_only: bool = True):
        if cache_only and getter is not None:
            raise ValueError("cache-only image client cannot fetch upstream")
        if not cache_only and getter is None:
            raise ValueError("image cache writer needs a getter")
        self.dir = Path(directory) if directory else cache_dir()
        self.getter = getter
        self.cache_only = cache_only

    def _path(self, url: str) -> Path:
        h = md5_hex(url)
        return self.dir / h[:2] / h

    def get(self, url: str) -> Optional[Tuple[bytes, str]]:
        """(bytes, content type) from the cache, or None on a miss."""
        p = self._path(url)
        if not p.exists():
            return None
        ctype_file = p.with_suffix(".type")
        ctype = ctype_file.read_text() if ctype_file.exists() else ""
        return p.read_bytes(), ctype or mimetypes.guess_type(url)[0] or "image/jpeg"

    def warm(self, url: str) -> bool:
        """Fetch and store `url` unless already cached; returns True when stored."""
        if self.cache_only:
            raise RuntimeError("cache-only image client")
        if not url:
            return False
        p = self._path(url)
        if p.exists():
            return False
        data = self.getter.get_bytes(url)
        if not data:
            return False
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        ctype = mimetypes.guess_type(url)[0]
        if ctype:
            p.with_suffix(".type").write_text(ctype)
        log.debug("cached %s", url)
        return True


def image_reader() -> ImageCache:
    return ImageCache(cache_only=True)


def image_writer(getter: Optional[Getter] = None) -> ImageCache:
    return ImageCache(getter=getter or Getter(max_age=0), cache_only=False)
