# tests/test_sync.py
import json
from unittest.mock import MagicMock

import pytest

from mediavault.errors import ReleaseTypeNotFound
from mediavault.film_sync import sync_film
from mediavault.media import get_media
from mediavault.podcast_sync import sync_podcasts
from mediavault.rss import parse_podcast

from .test_parsers import RSS

FEED = "https://example.com/show.rss"


def write_config(tmp_path, name: str, config: dict) -> None:
    media_dir = tmp_path / "media" / name
    media_dir.mkdir(parents=True)
    (media_dir / "config.json").write_text(json.dumps(config), encoding="utf-8")


# -------- podcasts --------
@pytest.mark.asyncio
async def test_podcast_sync_stores_series_and_episodes(tmp_path, auth):
    write_config(tmp_path, "shows", {"podcast": {"series": [FEED]}})
    media = await get_media("shows")
    rss = MagicMock()
    rss.fetch_podcast.return_value = parse_podcast(RSS)

    counts = await sync_podcasts(media, rss=rss)
    rss.fetch_podcast.assert_called_once_with(FEED)
    assert counts == {"series": 1, "added": 2, "removed": 0, "errors": 0}

    [series] = await media.podcast.series_list()
    assert series.title == "Night & Day"
    episodes = await media.podcast.episodes(series)
    assert sorted(e.title for e in episodes) == ["Episode 1", "Episode 2"]
    assert await media.podcast_index.search("+title:\"episode 1\"") == ["ep-1"]


@pytest.mark.asyncio
async def test_podcast_sync_removes_dropped_episodes(tmp_path, auth):
    write_config(tmp_path, "shows", {"podcast": {"series": [FEED]}})
    media = await get_media("shows")
    rss = MagicMock()
    rss.fetch_podcast.return_value = parse_podcast(RSS)
    await sync_podcasts(media, rss=rss)

    shorter = parse_podcast(RSS)
    shorter.episodes = shorter.episodes[:1]
    rss.fetch_podcast.return_value = shorter
    counts = await sync_podcasts(media, rss=rss)
    assert (counts["added"], counts["removed"]) == (0, 1)
    [series] = await media.podcast.series_list()
    assert [e.eid for e in await media.podcast.episodes(series)] == ["ep-1"]


@pytest.mark.asyncio
async def test_podcast_fetch_failure_is_counted(tmp_path, auth):
    write_config(tmp_path, "shows", {"podcast": {"series": [FEED]}})
    media = await get_media("shows")
    rss = MagicMock()
    rss.fetch_podcast.return_value = None
    counts = await sync_podcasts(media, rss=rss)
    assert counts["errors"] == 1 and counts["series"] == 0


# -------- film --------
PEOPLE = {6384: "Keanu Reeves", 9340: "Lana Wachowski"}


def matrix_tmdb() -> MagicMock:
    tmdb = MagicMock()
    tmdb.movie_search.return_value = [
        {"id": 604, "title": "The Matrix Reloaded", "release_date": "2003-05-15"},
        {"id": 603, "title": "The Matrix", "release_date": "1999-03-30"},
    ]
    tmdb.movie_detail.return_value = {
        "id": 603, "title": "The Matrix", "imdb_id": "tt0133093", "release_date": "1999-03-30",
        "runtime": 136, "genres": [{"name": "Action"}, {"name": "Science Fiction"}],
    }
    tmdb.movie_credits.return_value = {
        "cast": [{"id": 6384, "character": "Neo", "order": 0}],
        "crew": [{"id": 9340, "job": "Director", "department": "Directing"},
                 {"id": 1, "job": "Caterer", "department": "Crew"}],
    }
    tmdb.movie_keyword_names.return_value = ["hacker"]
    tmdb.movie_videos.return_value = []
    tmdb.movie_release_type.side_effect = ReleaseTypeNotFound()
    tmdb.person_detail.side_effect = lambda peid: {"name": PEOPLE[peid]}
    return tmdb


@pytest.fixture
def film_root(tmp_path):
    root = tmp_path / "film"
    root.mkdir()
    write_config(tmp_path, "films", {"buckets": [{"media": "film", "fs_root": root.as_posix()}]})
    return root


@pytest.mark.asyncio
async def test_film_sync_matches_and_stores_movie(film_root, auth):
    (film_root / "The Matrix (1999).mkv").write_bytes(b"x" * 10)
    (film_root / "notes.txt").write_text("not a movie")
    media = await get_media("films")

    counts = await sync_film(media, tmdb=matrix_tmdb())
    assert counts["added"] == 1 and counts["errors"] == 0

    [m] = await media.film.movies()
    assert (m.tmid, m.imid, m.title, m.runtime, m.rating) == (603, "tt0133093", "The Matrix", 136, "")
    assert m.date.year == 1999
    assert await media.film.genres(m) == ["Action", "Science Fiction"]
    assert await media.film.keywords(m) == ["hacker"]
    assert await media.film.directors(m) == ["Lana Wachowski"]
    assert [c["person"].name for c in await media.film.cast(m)] == ["Keanu Reeves"]
    assert await media.film_index.search("+genre:action") == [m.key]


@pytest.mark.asyncio
async def test_film_sync_skips_unmatched_titles(film_root, auth):
    (film_root / "Unknown Film (2001).mp4").write_bytes(b"x")
    media = await get_media("films")
    tmdb = matrix_tmdb()
    counts = await sync_film(media, tmdb=tmdb)
    assert counts["skipped"] == 1
    tmdb.movie_detail.assert_not_called()


@pytest.mark.asyncio
async def test_film_sync_keeps_largest_duplicate(film_root, auth):
    # listed first, so it is stored first
    (film_root / "The Matrix (1999) - Remastered.mkv").write_bytes(b"x" * 100)
    (film_root / "The Matrix (1999).mkv").write_bytes(b"x" * 10)
    media = await get_media("films")

    counts = await sync_film(media, tmdb=matrix_tmdb())
    assert (counts["added"], counts["duplicates"]) == (1, 1)
    [m] = await media.film.movies()
    assert m.key.endswith("The Matrix (1999) - Remastered.mkv")
