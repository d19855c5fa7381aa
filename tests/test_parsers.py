# tests/test_parsers.py
import pytest

from mediavault.activity import parse_events
from mediavault.config import PREFER_LARGEST, PREFER_SMALLEST, FilmConfig
from mediavault.errors import InvalidEpisode
from mediavault.film_sync import parse_movie_path, prefer_new
from mediavault.music_sync import parse_track_path
from mediavault.pls import PLSError, parse_pls
from mediavault.rss import parse_podcast
from mediavault.tv_sync import parse_episode_path


# -------- file names --------
def test_track_path():
    t = parse_track_path("/music/The Beatles/Abbey Road (1969)/02-Something.flac")
    assert (t.artist, t.release, t.date, t.disc, t.track, t.title) == (
        "The Beatles", "Abbey Road", "1969", 1, 2, "Something")


def test_track_path_with_disc():
    t = parse_track_path("/music/Prince/Sign o' the Times (1987)/2-03-The Cross.mp3")
    assert (t.disc, t.track, t.title) == (2, 3, "The Cross")


def test_track_path_without_year_or_number():
    assert parse_track_path("/music/Artist/Release/06-Song.mp3").date == ""
    assert parse_track_path("/music/Artist/Release/Song.mp3") is None
    assert parse_track_path("/music/Artist/Release/01-Song.wav") is None


def test_movie_path():
    assert parse_movie_path("/movies/The Matrix (1999).mkv") == ("The Matrix", "1999")
    assert parse_movie_path("/movies/Alien (1979) - Director's Cut.mp4") == ("Alien", "1979")
    assert parse_movie_path("/movies/No Year.mkv") is None


def test_episode_path():
    assert parse_episode_path("/tv/Severance (2022)/Severance (2022) - S01E02 - Half Loop.mkv") == (
        "Severance", "2022", 1, 2)
    assert parse_episode_path("/tv/Severance (2022)/notes.txt") is None
    with pytest.raises(InvalidEpisode):
        parse_episode_path("/tv/Severance (2022)/Severance (2022) - S00E01 - Special.mkv")


def test_duplicate_policy():
    assert prefer_new(PREFER_LARGEST, 200, 100)
    assert not prefer_new(PREFER_LARGEST, 100, 200)
    assert prefer_new(PREFER_SMALLEST, 100, 200)
    with pytest.raises(ValueError):
        prefer_new("newest", 1, 2)
    with pytest.raises(ValueError):
        FilmConfig(duplicate_resolution="newest")


# -------- pls --------
PLS = """[playlist]
File1=http://stream.example.com/one
Title1=One
Length1=-1
File2=http://stream.example.com/two
Title2=Two
Length2=-1
NumberOfEntries=2
Version=2
"""


def test_parse_pls():
    p = parse_pls(PLS)
    assert p.number_of_entries == 2
    assert [(e.file, e.title, e.length) for e in p.entries] == [
        ("http://stream.example.com/one", "One", -1),
        ("http://stream.example.com/two", "Two", -1),
    ]


def test_parse_pls_rejects_mismatched_count():
    with pytest.raises(PLSError):
        parse_pls(PLS.replace("NumberOfEntries=2", "NumberOfEntries=3"))
    with pytest.raises(PLSError):
        parse_pls(PLS.replace("Version=2", "Version=1"))


# -------- rss --------
RSS = """<?xml version="1.0"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Night &amp; Day</title>
    <link>https://example.com/show</link>
    <itunes:author>Someone</itunes:author>
    <itunes:image href="https://example.com/show.jpg"/>
    <ttl>60</ttl>
    <item>
      <title>Episode 1</title>
      <link>https://example.com/show/1</link>
      <pubDate>Wed, 04 Dec 2024 10:00:00 GMT</pubDate>
      <guid isPermaLink="false">ep-1</guid>
      <enclosure url="https://example.com/1.mp3" length="1234" type="audio/mpeg"/>
    </item>
    <item>
      <title>Episode 2</title>
      <link>https://example.com/show/2</link>
      <enclosure url="https://example.com/2.mp3" length="99" type="audio/mpeg"/>
    </item>
  </channel>
</rss>
"""


def test_parse_podcast():
    p = parse_podcast(RSS)
    assert p.title == "Night & Day"
    assert p.image == "https://example.com/show.jpg"
    assert p.ttl == 60
    first, second = p.episodes
    assert (first.url, first.size, first.content_type, first.guid) == (
        "https://example.com/1.mp3", 1234, "audio/mpeg", "ep-1")
    assert first.publish_time.year == 2024
    # no guid: hashed link
    assert len(second.guid) == 32


# -------- activity and progress payloads --------
def test_parse_events_list_form():
    events = parse_events([
        {"kind": "track", "date": "2024-12-04T10:00:00Z", "etag": "E"},
        {"kind": "movie", "date": "2024-12-04T12:00:00Z", "tmid": "603"},
        {"kind": "episode", "date": "2024-12-04T13:00:00Z", "eid": "ep-1"},
        {"kind": "track", "etag": "no date"},
        {"kind": "bogus", "date": "2024-12-04T10:00:00Z"},
    ])
    assert (len(events.tracks), len(events.movies), len(events.episodes)) == (1, 1, 1)
    assert len(events) == 3


def test_parse_events_grouped_form():
    events = parse_events({
        "TrackEvents": [{"Date": "2024-12-04T10:00:00Z", "RID": "r1"}],
        "MovieEvents": [{"Date": "2024-12-04T10:00:00Z", "IMID": "tt0133093"}],
    })
    assert events.tracks[0].rid == "r1"
    assert events.movies[0].imid == "tt0133093"
    assert events.episodes == []
