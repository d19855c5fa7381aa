# tests/test_tv_sync.py
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from mediavault.errors import InvalidEpisode
from mediavault.media import get_media
from mediavault.tv_sync import parse_episode_path, sync_tv

from .test_sync import write_config

SEVERANCE = 95396
EPISODES = {1: "Good News About Hell", 2: "Half Loop"}
PEOPLE = {1: "Adam Scott", 2: "Ben Stiller", 4: "Britt Lower", 5: "Guest Star"}
CREW = [{"id": 2, "name": "Ben Stiller", "job": "Director", "department": "Directing"},
        {"id": 3, "name": "Someone", "job": "Caterer", "department": "Crew"}]
# any time before the files were written; lists the whole bucket
EPOCH = datetime(1970, 1, 1)


def severance_tmdb() -> MagicMock:
    tmdb = MagicMock()
    tmdb.tv_search.return_value = [
        {"id": 1, "name": "Severance", "first_air_date": "1999-01-01"},
        {"id": SEVERANCE, "name": "Severance", "first_air_date": "2022-02-17"},
    ]
    tmdb.tv_detail.return_value = {
        "id": SEVERANCE, "name": "Severance", "first_air_date": "2022-02-17",
        "genres": [{"name": "Drama"}], "number_of_seasons": 1, "number_of_episodes": 9,
        "status": "Returning Series", "vote_average": 8.4, "vote_count": 1200,
    }
    tmdb.tv_content_rating.return_value = "TV-MA"
    tmdb.tv_keyword_names.return_value = ["office"]
    tmdb.tv_credits.return_value = {"cast": [
        {"id": 1, "name": "Adam Scott", "character": "Mark", "order": 0},
        {"id": 4, "name": "Britt Lower", "character": "Helly", "order": 1},
    ]}
    tmdb.tv_episode_detail.side_effect = lambda tvid, season, episode: {
        "name": EPISODES[episode], "air_date": "2022-02-18", "runtime": 57, "vote_average": 8.0,
    }
    # a guest star in the first episode only
    tmdb.tv_episode_credits.side_effect = lambda tvid, season, episode: {
        "cast": [{"id": 5, "name": "Guest Star", "character": "Guest", "order": 9}] if episode == 1 else [],
        "crew": CREW,
    }
    tmdb.person_detail.side_effect = lambda peid: {"name": PEOPLE[peid]}
    return tmdb


@pytest.fixture
def tv_root(tmp_path):
    root = tmp_path / "tv"
    show = root / "Severance"
    show.mkdir(parents=True)
    (show / "Severance (2022) S01E01 - Good News About Hell.mkv").write_bytes(b"x" * 10)
    (show / "Severance (2022) S01E02 - Half Loop.mkv").write_bytes(b"x" * 20)
    (show / "Severance (2022) S00E01.mkv").write_bytes(b"special")
    (show / "notes.txt").write_text("not an episode")
    write_config(tmp_path, "shows", {"buckets": [{"media": "tv", "fs_root": root.as_posix()}]})
    return root


def test_parse_episode_path():
    assert parse_episode_path("/tv/Severance (2022) S01E02 - Half Loop.mkv") == ("Severance", "2022", 1, 2)
    assert parse_episode_path("/tv/notes.txt") is None
    with pytest.raises(InvalidEpisode):
        parse_episode_path("/tv/Severance (2022) S01E00.mkv")


@pytest.mark.asyncio
async def test_tv_sync_stores_series_once_and_episodes(tv_root, auth):
    media = await get_media("shows")
    tmdb = severance_tmdb()
    counts = await sync_tv(media, tmdb=tmdb)
    assert counts == {"added": 2, "updated": 0, "unchanged": 0, "skipped": 1, "errors": 0}

    # both episodes share one series sync within the pass
    tmdb.tv_detail.assert_called_once_with(SEVERANCE)
    assert tmdb.tv_search.call_count == 2

    [s] = await media.tv.series_list()
    assert (s.tvid, s.name, s.rating, s.season_count) == (SEVERANCE, "Severance", "TV-MA", 1)
    assert await media.tv.genres(s) == ["Drama"]
    episodes = await media.tv.episodes(s)
    assert [(e.season, e.episode, e.name) for e in episodes] == [(1, 1, "Good News About Hell"), (1, 2, "Half Loop")]

    index = media.tv_index
    keys = sorted(e.key for e in episodes)
    assert sorted(await index.search('+cast:"adam scott"')) == keys
    assert sorted(await index.search('+director:"ben stiller"')) == keys
    assert await index.search('+title:"half loop"') == [episodes[1].key]
    assert await index.search('+cast:"guest star"') == [episodes[0].key]
    assert await index.search("+caterer:someone") == []


@pytest.mark.asyncio
async def test_tv_sync_over_unchanged_bucket_changes_nothing(tv_root, auth):
    media = await get_media("shows")
    tmdb = severance_tmdb()
    await sync_tv(media, tmdb=tmdb)
    [s] = await media.tv.series_list()
    before = [(e.id, e.uuid, e.etag) for e in await media.tv.episodes(s)]

    counts = await sync_tv(media, tmdb=tmdb, since=EPOCH)
    assert counts == {"added": 0, "updated": 0, "unchanged": 2, "skipped": 1, "errors": 0}
    assert tmdb.tv_search.call_count == 2
    assert tmdb.tv_detail.call_count == 1
    assert [(e.id, e.uuid, e.etag) for e in await media.tv.episodes(s)] == before
    assert len(await media.tv_index.search('+cast:"adam scott"')) == 2


@pytest.mark.asyncio
async def test_tv_sync_updates_changed_file_and_keeps_uuid(tv_root, auth):
    media = await get_media("shows")
    tmdb = severance_tmdb()
    await sync_tv(media, tmdb=tmdb)
    [s] = await media.tv.series_list()
    first, second = await media.tv.episodes(s)

    (tv_root / "Severance" / "Severance (2022) S01E02 - Half Loop.mkv").write_bytes(b"y" * 30)
    counts = await sync_tv(media, tmdb=tmdb, since=EPOCH)
    assert (counts["updated"], counts["unchanged"]) == (1, 1)

    again = await media.tv.episodes(s)
    assert [e.uuid for e in again] == [first.uuid, second.uuid]
    assert again[1].size == 30 and again[1].etag != second.etag


@pytest.mark.asyncio
async def test_tv_sync_skips_unmatched_series(tmp_path, auth):
    root = tmp_path / "tv"
    root.mkdir()
    (root / "Unknown Show (1999) S01E01.mkv").write_bytes(b"x")
    write_config(tmp_path, "shows", {"buckets": [{"media": "video", "fs_root": root.as_posix()}]})
    media = await get_media("shows")
    tmdb = severance_tmdb()

    counts = await sync_tv(media, tmdb=tmdb)
    assert counts["skipped"] == 1 and counts["added"] == 0
    tmdb.tv_detail.assert_not_called()
    assert await media.tv.series_list() == []
