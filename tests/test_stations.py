# tests/test_stations.py
import json
from unittest.mock import MagicMock

import pytest

from mediavault.media_models import Station, StationType
from mediavault.resolve import Resolver
from mediavault.spiff import TYPE_STREAM

LIVE_PLS = "https://radio.example.com/live.pls"
BACKUP_PLS = "https://backup.example.com/live.pls"

PLAYLISTS = {
    LIVE_PLS: """[playlist]
NumberOfEntries=2
File1=https://radio.example.com/live-128.mp3
Title1=Live 128k
Length1=-1
File2=https://radio.example.com/live-64.aac
Title2=Live 64k
Length2=-1
Version=2
""",
    BACKUP_PLS: """[playlist]
File1=https://backup.example.com/live.mp3
Title1=Backup
Length1=-1
NumberOfEntries=1
Version=2
""",
}


def stream_station(ref: str) -> Station:
    return Station(id=7, user="*", type=StationType.stream.value, name="Example FM",
                   creator="Example", image="https://radio.example.com/logo.png", ref=ref)


def pls_getter(playlists=PLAYLISTS) -> MagicMock:
    getter = MagicMock()
    getter.get_text.side_effect = lambda url: playlists.get(url)
    return getter


@pytest.mark.asyncio
async def test_pls_station_lists_every_stream(ctx):
    getter = pls_getter()
    s = await Resolver(ctx, getter=getter).refresh_station(stream_station(LIVE_PLS))
    getter.get_text.assert_called_once_with(LIVE_PLS)
    assert s.type == TYPE_STREAM
    assert s.playlist.location == "/api/stations/7"
    assert [(e.title, e.location, e.size) for e in s.entries] == [
        ("Live 128k", ["https://radio.example.com/live-128.mp3"], [-1]),
        ("Live 64k", ["https://radio.example.com/live-64.aac"], [-1]),
    ]
    assert {e.creator for e in s.entries} == {"Example"}
    assert {e.image for e in s.entries} == {"https://radio.example.com/logo.png"}


@pytest.mark.asyncio
async def test_source_list_station_is_one_entry_with_every_variant(ctx):
    ref = json.dumps([
        {"contentType": "audio/x-scpls", "url": LIVE_PLS},
        {"contentType": "audio/aac", "url": "https://radio.example.com/live.aac"},
        {"contentType": "audio/x-scpls", "url": BACKUP_PLS},
    ])
    getter = pls_getter()
    s = await Resolver(ctx, getter=getter).refresh_station(stream_station(ref))
    [e] = s.entries
    assert e.title == "Example FM"
    # direct sources first, then the first stream of each playlist
    assert e.location == [
        "https://radio.example.com/live.aac",
        "https://radio.example.com/live-128.mp3",
        "https://backup.example.com/live.mp3",
    ]
    assert e.size == [-1, -1, -1]
    assert getter.get_text.call_count == 2


@pytest.mark.asyncio
async def test_source_list_skips_unreachable_playlists(ctx):
    ref = json.dumps([{"url": LIVE_PLS}, {"url": "https://gone.example.com/x.pls"}, {"url": ""}])
    s = await Resolver(ctx, getter=pls_getter()).refresh_station(stream_station(ref))
    [e] = s.entries
    assert e.location == ["https://radio.example.com/live-128.mp3"]


@pytest.mark.asyncio
async def test_direct_stream_station(ctx):
    getter = pls_getter()
    s = await Resolver(ctx, getter=getter).refresh_station(stream_station("https://radio.example.com/live.mp3"))
    [e] = s.entries
    assert (e.title, e.location, e.size) == ("Example FM", ["https://radio.example.com/live.mp3"], [-1])
    getter.get_text.assert_not_called()


@pytest.mark.asyncio
async def test_bad_or_unsupported_streams_are_empty(ctx):
    bad = {LIVE_PLS: "[playlist]\nNumberOfEntries=3\nFile1=https://radio.example.com/a.mp3\nVersion=2\n"}
    s = await Resolver(ctx, getter=pls_getter(bad)).refresh_station(stream_station(LIVE_PLS))
    assert s.entries == []

    s = await Resolver(ctx, getter=pls_getter()).refresh_station(stream_station("https://radio.example.com/live"))
    assert s.type == TYPE_STREAM
    assert s.entries == []
