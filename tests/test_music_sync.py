# tests/test_music_sync.py
import copy
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from mediavault.images import upstream_url
from mediavault.lastfm import TopTrack
from mediavault.media import get_media
from mediavault.media_models import Release, Track
from mediavault.music_sync import MusicSync, parse_track_path, sync_covers

from .test_sync import write_config

NIRVANA = "5b11f4ce-a62d-471e-81fc-a69a8278c7da"

RELEASE = {
    "id": "re-nevermind",
    "title": "Nevermind",
    "status": "Official",
    "country": "US",
    "date": "1991-09-24",
    "release-group": {"id": "rg-nevermind", "title": "Nevermind", "primary-type": "Album",
                      "first-release-date": "1991-09-24"},
    "cover-art-archive": {"artwork": True, "front": True},
    "media": [{
        "position": 1, "format": "CD", "track-count": 2,
        "tracks": [
            {"position": 1, "recording": {"id": "rid-teen-spirit",
                                          "artist-credit": [{"name": "Nirvana", "joinphrase": ""}]}},
            {"position": 2, "recording": {"id": "rid-in-bloom", "relations": [
                {"target-type": "artist", "type": "instrument", "attributes": ["drums (drum set)"],
                 "artist": {"name": "Dave Grohl"}},
            ]}},
        ],
    }],
}


def nirvana_mb(release=RELEASE) -> MagicMock:
    mb = MagicMock()
    mb.search_artist.return_value = {"id": NIRVANA, "name": "Nirvana"}
    mb.artist_detail.return_value = {
        "id": NIRVANA, "name": "Nirvana", "sort-name": "Nirvana", "country": "US",
        "life-span": {"begin": "1987"},
        "genres": [{"name": "rock", "count": 3}, {"name": "grunge", "count": 10}],
    }
    mb.artist_releases.return_value = [release]
    mb.release.return_value = release
    return mb


def services():
    lastfm = MagicMock()
    lastfm.artist_top_tracks.return_value = [TopTrack(title="Smells Like Teen Spirit", rank=1)]
    lastfm.similar_artists.return_value = {}
    fanart = MagicMock()
    fanart.artist_art.return_value = None
    return lastfm, fanart


@pytest.fixture
def tunes_root(tmp_path):
    root = tmp_path / "tunes"
    album = root / "Nirvana" / "Nevermind (1991)"
    album.mkdir(parents=True)
    (album / "01-Smells Like Teen Spirit.mp3").write_bytes(b"teen spirit")
    (album / "02-In Bloom.mp3").write_bytes(b"in bloom")
    (root / "Nirvana" / "cover.jpg").write_bytes(b"not a track")
    write_config(tmp_path, "tunes", {"buckets": [{"media": "music", "fs_root": root.as_posix()}]})
    return root


async def all_tracks(media):
    async with media.session() as db:
        return list((await db.execute(select(Track).order_by(Track.track_num))).scalars().all())


def test_parse_track_path():
    p = parse_track_path("/music/Nirvana/Nevermind (1991)/2-03-Come as You Are.flac")
    assert (p.artist, p.release, p.date, p.disc, p.track, p.title) == (
        "Nirvana", "Nevermind", "1991", 2, 3, "Come as You Are")
    assert parse_track_path("/music/Nirvana/cover.jpg") is None


@pytest.mark.asyncio
async def test_music_sync_builds_tracks_releases_and_index(tunes_root, auth):
    media = await get_media("tunes")
    lastfm, fanart = services()
    counts = await MusicSync(media, mb=nirvana_mb(), lastfm=lastfm, fanart=fanart).run()
    assert counts == {"artists": 1, "indexed": 2, "errors": 0}

    [a] = await media.music.artists()
    assert (a.arid, a.genre, a.country) == (NIRVANA, "grunge", "US")
    assert a.date.year == 1987

    teen, bloom = await all_tracks(media)
    assert (teen.title, bloom.title) == ("Smells Like Teen Spirit", "In Bloom")
    assert {t.reid for t in (teen, bloom)} == {"re-nevermind"}
    assert (teen.rid, bloom.rid) == ("rid-teen-spirit", "rid-in-bloom")
    assert (teen.track_count, teen.disc_count, teen.date) == (2, 1, "1991")

    index = media.music_index
    assert sorted(await index.search("+genre:grunge")) == sorted([teen.key, bloom.key])
    assert await index.search("+type:popular") == [teen.key]
    assert await index.search('+drums:"dave grohl"') == [bloom.key]


@pytest.mark.asyncio
async def test_music_sync_over_unchanged_bucket_changes_nothing(tunes_root, auth):
    media = await get_media("tunes")
    mb = nirvana_mb()
    lastfm, fanart = services()
    sync = MusicSync(media, mb=mb, lastfm=lastfm, fanart=fanart)
    await sync.run()
    before = [(t.id, t.uuid, t.etag, t.reid, t.rid) for t in await all_tracks(media)]
    indexed = sorted(await media.music_index.search("+artist:nirvana"))

    # the watermark pass lists nothing; a full pass lists everything and matches every etag
    assert await sync.run() == {"artists": 0, "indexed": 0, "errors": 0}
    assert await sync.run(full=True) == {"artists": 0, "indexed": 0, "errors": 0}
    assert mb.search_artist.call_count == 1
    assert [(t.id, t.uuid, t.etag, t.reid, t.rid) for t in await all_tracks(media)] == before
    assert sorted(await media.music_index.search("+artist:nirvana")) == indexed


@pytest.mark.asyncio
async def test_music_sync_removes_deleted_files(tunes_root, auth):
    media = await get_media("tunes")
    lastfm, fanart = services()
    sync = MusicSync(media, mb=nirvana_mb(), lastfm=lastfm, fanart=fanart)
    await sync.run()
    gone = tunes_root / "Nirvana" / "Nevermind (1991)" / "02-In Bloom.mp3"
    gone.unlink()

    counts = await sync.run(full=True)
    assert counts["artists"] == 1
    [left] = await all_tracks(media)
    assert left.title == "Smells Like Teen Spirit"
    assert left.track_count == 1
    assert await media.music_index.search('+drums:"dave grohl"') == []


@pytest.mark.asyncio
async def test_sync_bucket_limited_to_one_artist(tunes_root, auth):
    other = tunes_root / "Hole" / "Live Through This (1994)"
    other.mkdir(parents=True)
    (other / "01-Violet.mp3").write_bytes(b"violet")
    media = await get_media("tunes")
    lastfm, fanart = services()
    sync = MusicSync(media, mb=nirvana_mb(), lastfm=lastfm, fanart=fanart)

    [bucket] = media.buckets("music")
    assert await sync.sync_bucket(bucket, None, artist="Hole") == {"Hole"}
    assert [t.title for t in await all_tracks(media)] == ["Violet"]
    assert await sync.sync_bucket(bucket, None) == {"Nirvana"}
    assert len(await all_tracks(media)) == 3


@pytest.mark.asyncio
async def test_sync_covers_falls_back_to_release_group_art(tunes_root, auth):
    release = copy.deepcopy(RELEASE)
    release["cover-art-archive"] = {"artwork": False, "front": False}
    mb = nirvana_mb(release)
    mb.cover_art.return_value = {"from_group": True, "images": [{"front": True}]}
    media = await get_media("tunes")
    lastfm, fanart = services()
    await MusicSync(media, mb=mb, lastfm=lastfm, fanart=fanart).run()

    writer = MagicMock()
    writer.warm.return_value = True
    assert await sync_covers(media, mb=mb, writer=writer) == 1
    mb.cover_art.assert_called_once_with("re-nevermind", "rg-nevermind")
    writer.warm.assert_called_once_with(upstream_url("/img/mb/rg/rg-nevermind/front-250"))
    assert all(t.group_artwork for t in await all_tracks(media))
    async with media.session() as db:
        [r] = (await db.execute(select(Release))).scalars().all()
    assert r.group_artwork

    # group art is remembered; the archive is not asked again
    await sync_covers(media, mb=mb, writer=writer)
    assert mb.cover_art.call_count == 1


@pytest.mark.asyncio
async def test_sync_covers_warms_release_art(tunes_root, auth):
    mb = nirvana_mb()
    media = await get_media("tunes")
    lastfm, fanart = services()
    await MusicSync(media, mb=mb, lastfm=lastfm, fanart=fanart).run()

    writer = MagicMock()
    writer.warm.return_value = True
    assert await sync_covers(media, mb=mb, writer=writer) == 1
    mb.cover_art.assert_not_called()
    writer.warm.assert_called_once_with(upstream_url("/img/mb/re/re-nevermind/front-250"))
