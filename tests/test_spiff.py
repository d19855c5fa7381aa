# tests/test_spiff.py
import json

import pytest

from mediavault.errors import BadRequest
from mediavault.spiff import (
    TYPE_MUSIC, TYPE_STREAM, Entry, dedup, entries_changed, new_playlist, parse, patch, retype, to_xspf,
)


def test_parse_accepts_track_and_dollar_ref():
    s = parse(json.dumps({
        "playlist": {"title": "t", "track": [{"$ref": "/music/tracks/1"}, {"title": "x", "size": [1]}]},
        "type": "music",
    }))
    assert s.entries[0].ref == "/music/tracks/1"
    assert s.entries[1].title == "x"


def test_as_dict_emits_entry_and_ref():
    s = parse({"playlist": {"track": [{"$ref": "/a"}, {"title": "b"}]}})
    d = s.as_dict()
    assert d["playlist"]["entry"][0] == {"ref": "/a"}
    assert "ref" not in d["playlist"]["entry"][1]
    assert d["type"] == TYPE_MUSIC


def test_parse_rejects_garbage():
    with pytest.raises(BadRequest):
        parse("{not json")
    with pytest.raises(BadRequest):
        parse({"playlist": {"entry": "nope"}})


def test_empty_document():
    s = parse("")
    assert s.entries == [] and s.type == TYPE_MUSIC


def test_patch_and_entries_changed():
    before = new_playlist(TYPE_MUSIC, title="a")
    after = patch(before, [{"op": "replace", "path": "/playlist/title", "value": "b"}])
    assert after.playlist.title == "b"
    assert not entries_changed(before, after)

    after = patch(before, [{"op": "add", "path": "/playlist/entry/-", "value": {"title": "x"}}])
    assert entries_changed(before, after)


def test_patch_errors_are_bad_requests():
    with pytest.raises(BadRequest):
        patch(new_playlist(), [{"op": "remove", "path": "/playlist/entry/3"}])
    with pytest.raises(BadRequest):
        patch(new_playlist(), "not a patch")


def test_retype_to_stream():
    s = new_playlist(TYPE_MUSIC)
    s.playlist.entry = [Entry(title="a", identifier=["1"], size=[10])]
    retype(s)
    assert s.type == TYPE_MUSIC

    s.playlist.entry.append(Entry(title="radio", location=["http://radio/stream"], size=[-1]))
    retype(s)
    assert s.type == TYPE_STREAM


def test_dedup_keeps_first_and_unidentified():
    entries = [
        Entry(title="a", identifier=["1"]),
        Entry(title="b", identifier=["2"]),
        Entry(title="a again", identifier=["1"]),
        Entry(title="no id"),
        Entry(title="no id either"),
    ]
    assert [e.title for e in dedup(entries)] == ["a", "b", "no id", "no id either"]


def test_to_xspf_maps_locations_and_skips_refs():
    s = new_playlist(TYPE_MUSIC, title="Mix", creator="me")
    s.playlist.entry = [
        Entry(title="one", creator="A", location=["/api/tracks/u1/location"], identifier=["e1"], size=[1]),
        Entry(ref="/music/tracks/2"),
    ]
    doc = to_xspf(s, locate=lambda loc: "https://cdn/" + loc.split("/")[3])
    assert doc.startswith("<?xml")
    assert "<title>Mix</title>" in doc
    assert "<location>https://cdn/u1</location>" in doc
    assert doc.count("<track>") == 1
