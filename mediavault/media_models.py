# mediavault/media_models.py
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, BigInteger, Boolean, DateTime, Float, Index, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import MediaBase
from .models import new_id
from .utils import utcnow


class StationType(str, enum.Enum):
    artist = "artist"
    genre = "genre"
    period = "period"
    similar = "similar"
    series = "series"
    stream = "stream"
    other = "other"


# ---- Music ----
class Artist(MediaBase):
    __tablename__ = "artists"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="")
    arid: Mapped[str] = mapped_column(String(64), default="", index=True)
    disambiguation: Mapped[str] = mapped_column(String(255), default="")
    country: Mapped[str] = mapped_column(String(16), default="")
    area: Mapped[str] = mapped_column(String(255), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    genre: Mapped[str] = mapped_column(String(255), default="")


class ArtistTag(MediaBase):
    __tablename__ = "artist_tags"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    tag: Mapped[str] = mapped_column(String(255), index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)


class ArtistImage(MediaBase):
    __tablename__ = "artist_images"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    kind: Mapped[str] = mapped_column(String(16), default="thumb")  # thumb | background
    url: Mapped[str] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(32), default="fanart")
    rank: Mapped[int] = mapped_column(Integer, default=0)


class Release(MediaBase):
    __tablename__ = "releases"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="")
    rgid: Mapped[str] = mapped_column(String(64), default="", index=True)
    reid: Mapped[str] = mapped_column(String(64), default="", index=True)
    disambiguation: Mapped[str] = mapped_column(String(255), default="")
    type: Mapped[str] = mapped_column(String(32), default="")
    secondary_types: Mapped[str] = mapped_column(String(255), default="")
    country: Mapped[str] = mapped_column(String(16), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    release_date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    track_count: Mapped[int] = mapped_column(Integer, default=0)
    disc_count: Mapped[int] = mapped_column(Integer, default=0)
    artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    front_artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    group_artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    other_artwork: Mapped[str] = mapped_column(String(64), default="")
    single_name: Mapped[str] = mapped_column(String(255), default="")  # first side of a single
    group_name: Mapped[str] = mapped_column(String(255), default="")
    status: Mapped[str] = mapped_column(String(32), default="")
    asin: Mapped[str] = mapped_column(String(32), default="")


class ReleaseMedia(MediaBase):
    """One disc (or other medium) of a release."""
    __tablename__ = "release_media"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reid: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    position: Mapped[int] = mapped_column(Integer, default=1)
    format: Mapped[str] = mapped_column(String(32), default="")
    track_count: Mapped[int] = mapped_column(Integer, default=0)


class Track(MediaBase):
    __tablename__ = "tracks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True, index=True, default=new_id)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    release: Mapped[str] = mapped_column(String(255), index=True)
    date: Mapped[str] = mapped_column(String(16), default="")  # year from the folder name
    title: Mapped[str] = mapped_column(String(255), index=True)
    track_num: Mapped[int] = mapped_column(Integer, default=0)
    disc_num: Mapped[int] = mapped_column(Integer, default=1)
    track_count: Mapped[int] = mapped_column(Integer, default=0)
    disc_count: Mapped[int] = mapped_column(Integer, default=0)
    track_artist: Mapped[str] = mapped_column(String(255), default="")
    release_title: Mapped[str] = mapped_column(String(255), default="")
    media_title: Mapped[str] = mapped_column(String(255), default="")
    release_date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    rid: Mapped[str] = mapped_column(String(64), default="", index=True)
    rgid: Mapped[str] = mapped_column(String(64), default="", index=True)
    reid: Mapped[str] = mapped_column(String(64), default="")
    artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    front_artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    group_artwork: Mapped[bool] = mapped_column(Boolean, default=False)
    key: Mapped[str] = mapped_column(Text, index=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    etag: Mapped[str] = mapped_column(String(255), index=True)
    last_modified: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    @property
    def preferred_artist(self) -> str:
        return self.track_artist or self.artist


class Popular(MediaBase):
    __tablename__ = "popular"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    title: Mapped[str] = mapped_column(String(255))
    rank: Mapped[int] = mapped_column(Integer, default=0)


class Similar(MediaBase):
    __tablename__ = "similar"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artist: Mapped[str] = mapped_column(String(255), index=True)
    arid: Mapped[str] = mapped_column(String(64))
    rank: Mapped[int] = mapped_column(Integer, default=0)


class Station(MediaBase):
    __tablename__ = "stations"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    shared: Mapped[bool] = mapped_column(Boolean, default=False)
    type: Mapped[str] = mapped_column(String(16), default=StationType.other.value)
    name: Mapped[str] = mapped_column(String(255), index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="")
    creator: Mapped[str] = mapped_column(String(255), default="")
    image: Mapped[str] = mapped_column(Text, default="")
    description: Mapped[str] = mapped_column(Text, default="")
    ref: Mapped[str] = mapped_column(Text, default="")
    playlist: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Playlist(MediaBase):
    __tablename__ = "playlists"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    playlist: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ActivePlaylist(MediaBase):
    """Singleton per user; the playlist currently loaded by the user's clients."""
    __tablename__ = "active_playlists"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    playlist: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ---- People (film and tv credits) ----
class Person(MediaBase):
    __tablename__ = "people"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    peid: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    imid: Mapped[str] = mapped_column(String(32), default="")
    name: Mapped[str] = mapped_column(String(255), index=True)
    profile_path: Mapped[str] = mapped_column(String(255), default="")
    bio: Mapped[str] = mapped_column(Text, default="")
    birthplace: Mapped[str] = mapped_column(String(255), default="")
    birthday: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    deathday: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)


# ---- Film ----
class Movie(MediaBase):
    __tablename__ = "movies"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True, index=True, default=new_id)
    tmid: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    imid: Mapped[str] = mapped_column(String(32), default="", index=True)
    title: Mapped[str] = mapped_column(String(255), index=True)
    sort_title: Mapped[str] = mapped_column(String(255), default="")
    original_title: Mapped[str] = mapped_column(String(255), default="")
    original_language: Mapped[str] = mapped_column(String(16), default="")
    backdrop_path: Mapped[str] = mapped_column(String(255), default="")
    poster_path: Mapped[str] = mapped_column(String(255), default="")
    budget: Mapped[int] = mapped_column(BigInteger, default=0)
    revenue: Mapped[int] = mapped_column(BigInteger, default=0)
    overview: Mapped[str] = mapped_column(Text, default="")
    tagline: Mapped[str] = mapped_column(Text, default="")
    runtime: Mapped[int] = mapped_column(Integer, default=0)
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    rating: Mapped[str] = mapped_column(String(16), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    key: Mapped[str] = mapped_column(Text, index=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    etag: Mapped[str] = mapped_column(String(255), index=True)
    last_modified: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)


class Collection(MediaBase):
    __tablename__ = "collections"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="")


class Genre(MediaBase):
    __tablename__ = "genres"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)


class Keyword(MediaBase):
    __tablename__ = "keywords"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)


class Cast(MediaBase):
    __tablename__ = "cast"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    character: Mapped[str] = mapped_column(String(255), default="")
    rank: Mapped[int] = mapped_column(Integer, default=0)


class Crew(MediaBase):
    __tablename__ = "crew"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    department: Mapped[str] = mapped_column(String(64), default="")
    job: Mapped[str] = mapped_column(String(64), default="")


class Trailer(MediaBase):
    __tablename__ = "trailers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    official: Mapped[bool] = mapped_column(Boolean, default=True)
    site: Mapped[str] = mapped_column(String(32), default="")
    size: Mapped[int] = mapped_column(Integer, default=0)
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    key: Mapped[str] = mapped_column(String(64), default="")
    url: Mapped[str] = mapped_column(Text, default="")


# ---- TV ----
class TVSeries(MediaBase):
    __tablename__ = "tv_series"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="")
    original_name: Mapped[str] = mapped_column(String(255), default="")
    original_language: Mapped[str] = mapped_column(String(16), default="")
    backdrop_path: Mapped[str] = mapped_column(String(255), default="")
    poster_path: Mapped[str] = mapped_column(String(255), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    overview: Mapped[str] = mapped_column(Text, default="")
    tagline: Mapped[str] = mapped_column(Text, default="")
    rating: Mapped[str] = mapped_column(String(16), default="")
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    season_count: Mapped[int] = mapped_column(Integer, default=0)
    episode_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), default="")


class TVEpisode(MediaBase):
    __tablename__ = "tv_episodes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True, index=True, default=new_id)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    season: Mapped[int] = mapped_column(Integer, default=0)
    episode: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(255), default="")
    overview: Mapped[str] = mapped_column(Text, default="")
    still_path: Mapped[str] = mapped_column(String(255), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    runtime: Mapped[int] = mapped_column(Integer, default=0)
    vote_average: Mapped[float] = mapped_column(Float, default=0.0)
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    key: Mapped[str] = mapped_column(Text, index=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    etag: Mapped[str] = mapped_column(String(255), index=True)
    last_modified: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (Index("ix_tv_episodes_sxe", "tvid", "season", "episode"),)


class TVSeriesGenre(MediaBase):
    __tablename__ = "tv_series_genres"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)


class TVSeriesKeyword(MediaBase):
    __tablename__ = "tv_series_keywords"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)


class TVSeriesCast(MediaBase):
    __tablename__ = "tv_series_cast"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    character: Mapped[str] = mapped_column(String(255), default="")
    rank: Mapped[int] = mapped_column(Integer, default=0)


class TVSeriesCrew(MediaBase):
    __tablename__ = "tv_series_crew"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    department: Mapped[str] = mapped_column(String(64), default="")
    job: Mapped[str] = mapped_column(String(64), default="")


class TVEpisodeCast(MediaBase):
    __tablename__ = "tv_episode_cast"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    season: Mapped[int] = mapped_column(Integer)
    episode: Mapped[int] = mapped_column(Integer)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    character: Mapped[str] = mapped_column(String(255), default="")
    rank: Mapped[int] = mapped_column(Integer, default=0)


class TVEpisodeCrew(MediaBase):
    __tablename__ = "tv_episode_crew"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tvid: Mapped[int] = mapped_column(Integer, index=True)
    season: Mapped[int] = mapped_column(Integer)
    episode: Mapped[int] = mapped_column(Integer)
    peid: Mapped[int] = mapped_column(Integer, index=True)
    department: Mapped[str] = mapped_column(String(64), default="")
    job: Mapped[str] = mapped_column(String(64), default="")


# ---- Podcasts ----
class Series(MediaBase):
    __tablename__ = "series"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sid: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    author: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    link: Mapped[str] = mapped_column(Text, default="")
    image: Mapped[str] = mapped_column(Text, default="")
    copyright: Mapped[str] = mapped_column(String(255), default="")
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    ttl: Mapped[int] = mapped_column(Integer, default=0)


class Episode(MediaBase):
    __tablename__ = "episodes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sid: Mapped[str] = mapped_column(String(64), index=True)
    eid: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    author: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    link: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[str] = mapped_column(Text, default="")
    image: Mapped[str] = mapped_column(Text, default="")
    content_type: Mapped[str] = mapped_column(String(64), default="")
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    date: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)


class Subscription(MediaBase):
    __tablename__ = "subscriptions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    sid: Mapped[str] = mapped_column(String(64), index=True)


# ---- Search ----
class SearchField(MediaBase):
    """One row per (document, field, value); see search.py."""
    __tablename__ = "search_fields"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    index_name: Mapped[str] = mapped_column(String(32))
    doc_key: Mapped[str] = mapped_column(Text)
    field: Mapped[str] = mapped_column(String(64))
    value_text: Mapped[str] = mapped_column(Text, default="")
    value_num: Mapped[Optional[float]] = mapped_column(Float, default=None)

    __table_args__ = (
        Index("ix_search_fields_doc", "index_name", "doc_key"),
        Index("ix_search_fields_field", "index_name", "field"),
    )
