# mediavault/client.py
from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import requests

from .config import settings

log = logging.getLogger("sync")

RETRY_STATUS = {429, 502, 503}


class Getter:
    """Blocking HTTP getter shared by the catalogue clients.

    Responses are cached in memory for `max_age` seconds and requests to the
    same host are spaced by `min_interval`. Failures are logged and return
    None; callers treat that as "no record".
    """

    def __init__(self, max_age: float = 3600.0, min_interval: Optional[float] = None,
                 user_agent: Optional[str] = None, timeout: Optional[float] = None):
        self.max_age = max_age
        self.min_interval = settings.CLIENT_MIN_INTERVAL_SECONDS if min_interval is None else min_interval
        self.timeout = timeout or settings.CLIENT_TIMEOUT_SECONDS
        self.session = requests.Session()
        self.session.headers["User-Agent"] = user_agent or settings.user_agent
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._last: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _throttle(self, url: str) -> None:
        if self.min_interval <= 0:
            return
        host = urlparse(url).netloc
        with self._lock:
            wait = self._last.get(host, 0.0) + self.min_interval - time.monotonic()
            if wait > 0:
                time.sleep(wait)
            self._last[host] = time.monotonic()

    def _request(self, url: str, params: Optional[Dict[str, Any]], headers: Optional[Dict[str, str]]):
        self._throttle(url)
        r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        if r.status_code in RETRY_STATUS:
            retry = r.headers.get("Retry-After", "")
            time.sleep(float(retry) if retry.isdigit() else 1.0)
            r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        return r

    def _cache_key(self, url: str, params: Optional[Dict[str, Any]]) -> str:
        return url + "?" + json.dumps(params or {}, sort_keys=True)

    def _cached(self, key: str) -> Any:
        hit = self._cache.get(key)
        if hit and time.monotonic() - hit[0] < self.max_age:
            return hit[1]
        return None

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> Optional[Any]:
        key = self._cache_key(url, params)
        data = self._cached(key)
        if data is not None:
            return data
        try:
            data = self._request(url, params, headers).json()
        except (requests.RequestException, ValueError) as e:
            log.warning("GET %s failed: %s", url, e)
            return None
        self._cache[key] = (time.monotonic(), data)
        return data

    def get_text(self, url: str, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> Optional[str]:
        key = self._cache_key(url, params)
        text = self._cached(key)
        if text is not None:
            return text
        try:
            text = self._request(url, params, headers).text
        except requests.RequestException as e:
            log.warning("GET %s failed: %s", url, e)
            return None
        self._cache[key] = (time.monotonic(), text)
        return text

    def get_bytes(self, url: str) -> Optional[bytes]:
        try:
            return self._request(url, None, None).content
        except requests.RequestException as e:
            log.warning("GET %s failed: %s", url, e)
            return None

    def close(self) -> None:
        self.session.close()
