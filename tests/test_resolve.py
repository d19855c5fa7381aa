# tests/test_resolve.py
import pytest

from mediavault.resolve import Resolver, locate, xspf
from mediavault.spiff import TYPE_MUSIC, Entry, new_playlist, parse

from .conftest import SOMETHING_UUID


def titles(s):
    return [e.title for e in s.entries]


@pytest.mark.asyncio
async def test_track_ref(ctx):
    s = parse({"playlist": {"track": [{"$ref": "/music/tracks/102"}]}})
    await Resolver(ctx).resolve(s)
    assert len(s.entries) == 1
    e = s.entries[0]
    assert e.ref == ""
    assert (e.title, e.creator, e.album) == ("Something", "The Beatles", "Abbey Road")
    assert e.identifier == ["E"]
    assert e.location == [f"/api/tracks/{SOMETHING_UUID}/location"]


@pytest.mark.asyncio
async def test_refs_expand_in_place_and_dedup(ctx):
    s = new_playlist(TYPE_MUSIC, title="mix")
    s.playlist.entry = [
        Entry(title="before", identifier=["x"], size=[1]),
        Entry(ref="/music/releases/re-abbey/tracks"),
        Entry(ref="/music/tracks/102"),
        Entry(title="after", identifier=["y"], size=[1]),
    ]
    await Resolver(ctx).resolve(s)
    assert titles(s) == ["before", "Come Together", "Something", "Here Comes the Sun", "after"]


@pytest.mark.asyncio
async def test_missing_and_unknown_refs_resolve_to_nothing(ctx):
    s = new_playlist(TYPE_MUSIC)
    s.playlist.entry = [
        Entry(ref="/music/tracks/999"),
        Entry(ref="/music/artists/999/popular"),
        Entry(ref="/not/a/route"),
    ]
    await Resolver(ctx).resolve(s)
    assert s.entries == []


@pytest.mark.asyncio
async def test_artist_popular(ctx):
    entries = await Resolver(ctx).resolve_ref("/music/artists/1/popular")
    assert [e.title for e in entries] == ["Here Comes the Sun", "Come Together"]


@pytest.mark.asyncio
async def test_search_ref(ctx):
    entries = await Resolver(ctx).resolve_ref("/music/search?q=something")
    assert [e.title for e in entries] == ["Something"]


@pytest.mark.asyncio
async def test_search_exact_match(ctx):
    # "come" matches two titles; an exact match on the title wins
    entries = await Resolver(ctx).resolve_ref("/music/search?q=Come%20Together&m=1")
    assert [e.title for e in entries] == ["Come Together"]


@pytest.mark.asyncio
async def test_search_falls_back_to_station(ctx):
    # no track matches "radio"; the station named for it plays instead
    entries = await Resolver(ctx).resolve_ref("/music/search?q=radio")
    assert [e.title for e in entries] == ["Here Comes the Sun", "Come Together"]


@pytest.mark.asyncio
async def test_station_ref_by_name(ctx):
    entries = await Resolver(ctx).resolve_ref("/music/stations/Beatles%20Radio")
    assert len(entries) == 2


@pytest.mark.asyncio
async def test_station_inside_station_is_not_followed(ctx):
    station = await ctx.music.lookup_station(ctx.name, "Beatles Radio")
    station.ref = "/music/stations/Beatles%20Radio"
    s = await Resolver(ctx).refresh_station(station)
    assert s.entries == []


@pytest.mark.asyncio
async def test_playlist_ref(ctx):
    doc = new_playlist(TYPE_MUSIC, title="saved")
    doc.playlist.entry = [Entry(title="one", identifier=["1"], size=[10]), Entry(ref="/music/tracks/102")]
    await ctx.music.create_playlist(ctx.name, "saved", doc.dumps())
    entries = await Resolver(ctx).resolve_ref("/music/playlists/saved")
    # stored references are not expanded again
    assert [e.title for e in entries] == ["one"]


@pytest.mark.asyncio
async def test_locate_and_xspf(ctx):
    url = await locate(ctx, f"/api/tracks/{SOMETHING_UUID}/location")
    assert url.startswith("/d/") and "?token=" in url
    assert await locate(ctx, "https://example.com/a.mp3") == "https://example.com/a.mp3"

    s = parse({"playlist": {"title": "x", "entry": [{"ref": "/music/tracks/102"}]}})
    await Resolver(ctx).resolve(s)
    doc = await xspf(ctx, s)
    assert "<trackList>" in doc
    assert "02-Something.mp3" in doc
    assert "<identifier>E</identifier>" in doc
