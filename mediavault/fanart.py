# mediavault/fanart.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .client import Getter
from .config import settings

FANART_API = "http://webservice.fanart.tv/v3/music"


class Fanart:
    def __init__(self, getter: Getter, project_key: Optional[str] = None):
        self.getter = getter
        self.key = project_key if project_key is not None else settings.FANART_PROJECT_KEY

    def artist_art(self, arid: str) -> Optional[Dict[str, Any]]:
        if not self.key:
            return None
        return self.getter.get_json(f"{FANART_API}/{arid}", params={"api_key": self.key})


def artist_thumbs(art: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list((art or {}).get("artistthumb") or [])


def artist_backgrounds(art: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list((art or {}).get("artistbackground") or [])
