# mediavault/spiff.py
"""Playlist documents.

JSON shape:

    {"playlist": {"title", "creator", "image", "location", "date",
                  "entry": [...]},
     "type": "music" | "video" | "podcast" | "stream",
     "index": 0, "position": 0}

An entry is either concrete (creator, album, title, image, location[],
identifier[], size[], date) or a reference holding only `ref`. Input also
accepts `track` for `entry` and `$ref` for `ref`.
"""
from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional, Union

import jsonpatch
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import BadRequest

TYPE_MUSIC = "music"
TYPE_VIDEO = "video"
TYPE_PODCAST = "podcast"
TYPE_STREAM = "stream"

XSPF_NS = "http://xspf.org/ns/0/"
XSPF_CONTENT_TYPE = "application/xspf+xml"


class Entry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ref: str = Field(default="", validation_alias=AliasChoices("ref", "$ref"))
    creator: str = ""
    album: str = ""
    title: str = ""
    image: str = ""
    location: List[str] = Field(default_factory=list)
    identifier: List[str] = Field(default_factory=list)
    size: List[int] = Field(default_factory=list)
    date: str = ""

    @property
    def first_identifier(self) -> str:
        return self.identifier[0] if self.identifier else ""

    def is_stream(self) -> bool:
        return not self.identifier or not self.size or -1 in self.size

    def as_dict(self) -> Dict[str, Any]:
        if self.ref:
            return {"ref": self.ref}
        return self.model_dump(exclude={"ref"})


class PlaylistBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    creator: str = ""
    image: str = ""
    location: str = ""
    date: str = ""
    entry: List[Entry] = Field(default_factory=list, validation_alias=AliasChoices("entry", "track"))


class Spiff(BaseModel):
    model_config = ConfigDict(extra="ignore")

    playlist: PlaylistBody = Field(default_factory=PlaylistBody)
    type: str = TYPE_MUSIC
    index: int = 0
    position: float = 0

    @property
    def entries(self) -> List[Entry]:
        return self.playlist.entry

    def as_dict(self) -> Dict[str, Any]:
        body = self.playlist.model_dump(exclude={"entry"})
        body["entry"] = [e.as_dict() for e in self.playlist.entry]
        return {"playlist": body, "type": self.type, "index": self.index, "position": self.position}

    def dumps(self) -> str:
        return json.dumps(self.as_dict())


def new_playlist(type: str = TYPE_MUSIC, **body: Any) -> Spiff:
    return Spiff(type=type, playlist=PlaylistBody(**body))


def parse(data: Union[str, bytes, Dict[str, Any]]) -> Spiff:
    """Parse a playlist document; malformed input is invalid-content."""
    try:
        if isinstance(data, (str, bytes)):
            data = json.loads(data) if data else {}
        return Spiff.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise BadRequest(message=f"playlist: {e}")


def patch(s: Spiff, ops: Any) -> Spiff:
    """Apply a JSON patch (RFC 6902) to the document."""
    try:
        doc = jsonpatch.apply_patch(s.as_dict(), ops)
    except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException, TypeError, ValueError) as e:
        raise BadRequest(message=f"patch: {e}")
    return parse(doc)


def entries_changed(before: Spiff, after: Spiff) -> bool:
    return [e.as_dict() for e in before.entries] != [e.as_dict() for e in after.entries]


def retype(s: Spiff) -> None:
    """Any entry without identifiers or sizes, or with an unknown size, makes a stream."""
    if any(e.is_stream() for e in s.entries if not e.ref):
        s.type = TYPE_STREAM


def dedup(entries: List[Entry]) -> List[Entry]:
    """Drop later entries sharing a first identifier; entries without one are kept."""
    seen = set()
    out = []
    for e in entries:
        ident = e.first_identifier
        if ident:
            if ident in seen:
                continue
            seen.add(ident)
        out.append(e)
    return out


# -------- xspf --------

def to_xspf(s: Spiff, locate: Optional[Callable[[str], str]] = None) -> str:
    """XSPF XML; `locate` maps each entry location (e.g. to a direct bucket URL)."""
    ET.register_namespace("", XSPF_NS)
    root = ET.Element(f"{{{XSPF_NS}}}playlist", version="1")
    body = s.playlist
    for tag in ("title", "creator", "image", "location", "date"):
        value = getattr(body, tag)
        if value:
            ET.SubElement(root, f"{{{XSPF_NS}}}{tag}").text = value
    tracks = ET.SubElement(root, f"{{{XSPF_NS}}}trackList")
    for e in s.entries:
        if e.ref:
            continue
        t = ET.SubElement(tracks, f"{{{XSPF_NS}}}track")
        for loc in e.location:
            ET.SubElement(t, f"{{{XSPF_NS}}}location").text = locate(loc) if locate else loc
        for ident in e.identifier:
            ET.SubElement(t, f"{{{XSPF_NS}}}identifier").text = ident
        for tag, value in (("creator", e.creator), ("album", e.album), ("title", e.title), ("image", e.image)):
            if value:
                ET.SubElement(t, f"{{{XSPF_NS}}}{tag}").text = value
    return ET.tostring(root, encoding="unicode", xml_declaration=True)
