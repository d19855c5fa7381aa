# mediavault/rss.py
from __future__ import annotations

import html
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .client import Getter
from .dates import parse_rfc1123
from .utils import md5_hex

log = logging.getLogger("sync")

NS = {
    "itunes": "http://www.itunes.com/dtds/podcast-1.0.dtd",
    "media": "http://search.yahoo.com/mrss/",
}


@dataclass
class FeedEpisode:
    title: str = ""
    link: str = ""
    author: str = ""
    description: str = ""
    content_type: str = ""
    size: int = 0
    url: str = ""
    publish_time: Optional[datetime] = None
    guid: str = ""
    image: str = ""


@dataclass
class Podcast:
    title: str = ""
    description: str = ""
    author: str = ""
    link: str = ""
    image: str = ""
    copyright: str = ""
    last_build_time: Optional[datetime] = None
    ttl: int = 0
    episodes: List[FeedEpisode] = field(default_factory=list)


def _text(el: Optional[ET.Element], path: str) -> str:
    if el is None:
        return ""
    found = el.find(path, NS)
    return (found.text or "").strip() if found is not None and found.text else ""


def _int(value: Optional[str]) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def _item_guid(item: ET.Element, link: str) -> str:
    guid_el = item.find("guid")
    guid = (guid_el.text or "").strip() if guid_el is not None and guid_el.text else ""
    if not guid:
        return md5_hex(link)
    permalink = guid_el.get("isPermaLink", "").lower() == "true"
    if permalink or "://" in guid:
        return md5_hex(guid)
    return guid


def _episode(item: ET.Element) -> FeedEpisode:
    content = item.find("media:content", NS)
    enclosure = item.find("enclosure")
    content_title = _text(content, "media:title")
    image_el = item.find("itunes:image", NS)

    ep = FeedEpisode(
        title=html.unescape(content_title or _text(item, "title")),
        link=_text(item, "link"),
        author=html.unescape(_text(item, "itunes:author")),
        description=_text(item, "description"),
        publish_time=parse_rfc1123(_text(item, "pubDate")),
        image=image_el.get("href", "") if image_el is not None else "",
    )
    if content is not None and _int(content.get("fileSize")) > 0:
        ep.size = _int(content.get("fileSize"))
    elif enclosure is not None:
        ep.size = _int(enclosure.get("length"))
    if content is not None and content_title:
        ep.content_type = content.get("type", "")
    elif enclosure is not None:
        ep.content_type = enclosure.get("type", "")
    if content is not None and content.get("url"):
        ep.url = content.get("url", "")
    elif enclosure is not None:
        ep.url = enclosure.get("url", "")
    ep.guid = _item_guid(item, ep.link)
    return ep


def parse_podcast(text: str) -> Podcast:
    root = ET.fromstring(text)
    channel = root.find("channel")
    if channel is None:
        raise ValueError("missing rss channel")

    # first non-empty <link>, ignoring <atom:link>
    link = ""
    for el in channel.findall("link"):
        if el.text and el.text.strip():
            link = el.text.strip()
            break

    image = _text(channel, "image/url")
    if not image:
        it = channel.find("itunes:image", NS)
        image = it.get("href", "") if it is not None else ""

    podcast = Podcast(
        title=html.unescape(_text(channel, "title")),
        description=_text(channel, "description"),
        author=html.unescape(_text(channel, "itunes:author")),
        link=link,
        image=image,
        copyright=_text(channel, "copyright"),
        last_build_time=parse_rfc1123(_text(channel, "lastBuildDate")),
        ttl=_int(_text(channel, "ttl")),
    )
    podcast.episodes = [_episode(item) for item in channel.findall("item")]
    return podcast


class RSS:
    def __init__(self, getter: Getter):
        self.getter = getter

    def fetch_podcast(self, url: str) -> Optional[Podcast]:
        text = self.getter.get_text(url)
        if text is None:
            return None
        try:
            return parse_podcast(text)
        except (ET.ParseError, ValueError) as e:
            log.warning("rss %s: %s", url, e)
            return None
