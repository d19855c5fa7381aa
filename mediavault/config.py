# mediavault/config.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv(override=True)

MEDIA_MUSIC = "music"
MEDIA_VIDEO = "video"
MEDIA_FILM = "film"
MEDIA_TV = "tv"

PREFER_LARGEST = "largest"
PREFER_SMALLEST = "smallest"


class Settings(BaseSettings):
    # branding; also the cookie name
    APP_NAME: str = "MediaVault"
    APP_VERSION: str = "1.0.0"
    CONTACT: str = "admin@localhost"

    # env / debug
    ENV: str = Field(default="dev", description="dev|prod")
    DEBUG: bool = False

    # server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # storage
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./mediavault.db",
        description="users, sessions, pairing codes, progress and activity",
    )
    DATA_DIR: str = "."
    MEDIA_DIR: str = Field(default=".", description="one sub-directory per media collection")
    TIME_ZONE: str = Field(default="UTC", description="events are localized to this zone on ingest")

    # sessions and codes
    SESSION_AGE_HOURS: int = 720
    CODE_AGE_MINUTES: int = 5
    COOKIE_SECURE: bool = True
    PASSWORD_MIN_ENTROPY: float = Field(default=60.0, description="bits")

    # token families; a *_SECRET_FILE takes effect when the secret is empty
    TOKEN_ISSUER: str = "mediavault"
    ACCESS_TOKEN_SECRET: str = ""
    ACCESS_TOKEN_SECRET_FILE: str = ""
    ACCESS_TOKEN_AGE_MINUTES: int = 4 * 60
    MEDIA_TOKEN_SECRET: str = ""
    MEDIA_TOKEN_SECRET_FILE: str = ""
    MEDIA_TOKEN_AGE_MINUTES: int = 8766 * 60
    CODE_TOKEN_SECRET: str = ""
    CODE_TOKEN_SECRET_FILE: str = ""
    CODE_TOKEN_AGE_MINUTES: int = 5
    FILE_TOKEN_SECRET: str = ""
    FILE_TOKEN_SECRET_FILE: str = ""
    FILE_TOKEN_AGE_MINUTES: int = 60

    # local file downloads (comma/semicolon-separated absolute paths)
    INCLUDE_DIRS: str = ""
    EXCLUDE_DIRS: str = ""

    # outbound http
    CLIENT_USER_AGENT: str = ""
    CLIENT_TIMEOUT_SECONDS: float = 20.0
    CLIENT_MIN_INTERVAL_SECONDS: float = 0.0
    IMAGE_CACHE_DIR: str = Field(default="", description="defaults to <DATA_DIR>/imagecache")

    # catalogue keys
    TMDB_API_KEY: str = ""
    TMDB_LANGUAGE: str = "en-US"
    LASTFM_API_KEY: str = ""
    FANART_PROJECT_KEY: str = ""

    # activity
    ACTIVITY_LIMIT: int = 50
    ACTIVITY_RECENT_LIMIT: int = 50
    ACTIVITY_POPULAR_LIMIT: int = 50
    RECENT_TRACKS_TITLE: str = "Recently Played"
    POPULAR_TRACKS_TITLE: str = "Popular Tracks"
    RECENT_MOVIES_TITLE: str = "Recently Watched"
    POPULAR_MOVIES_TITLE: str = "Popular Movies"

    # scheduler (minutes)
    SCHEDULER_ENABLED: bool = True
    HOUSEKEEPING_INTERVAL: int = 5
    MUSIC_SYNC_INTERVAL: int = 60
    MUSIC_POPULAR_SYNC_INTERVAL: int = 24 * 60
    MUSIC_SIMILAR_SYNC_INTERVAL: int = 24 * 60
    MUSIC_COVER_SYNC_INTERVAL: int = 24 * 60
    FILM_SYNC_INTERVAL: int = 60
    FILM_POSTER_SYNC_INTERVAL: int = 24 * 60
    FILM_BACKDROP_SYNC_INTERVAL: int = 24 * 60
    TV_SYNC_INTERVAL: int = 60
    TV_POSTER_SYNC_INTERVAL: int = 24 * 60
    TV_BACKDROP_SYNC_INTERVAL: int = 24 * 60
    TV_STILL_SYNC_INTERVAL: int = 24 * 60
    PODCAST_SYNC_INTERVAL: int = 60

    # cors (comma-separated)
    ALLOW_ORIGINS: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def user_agent(self) -> str:
        return self.CLIENT_USER_AGENT or f"{self.APP_NAME}/{self.APP_VERSION} ({self.CONTACT})"


settings = Settings()


def split_paths(value: str) -> List[str]:
    raw = (value or "").replace(";", ",")
    return [p.strip() for p in raw.split(",") if p.strip()]


# =======================
# Per-media configuration
# =======================

class RewriteRule(BaseModel):
    pattern: str
    replace: str


class BucketConfig(BaseModel):
    media: str = MEDIA_MUSIC
    fs_root: str = ""
    endpoint: str = ""
    region: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = ""
    object_prefix: str = ""
    use_ssl: bool = True
    url_expiration_minutes: int = 15
    local: bool = False
    rewrite_rules: List[RewriteRule] = Field(default_factory=list)


class ContentDescription(BaseModel):
    contentType: str = ""
    url: str = ""


class RadioStream(BaseModel):
    creator: str = ""
    title: str
    image: str = ""
    description: str = ""
    source: List[ContentDescription] = Field(default_factory=list)


class MusicConfig(BaseModel):
    artist_map: Dict[str, str] = Field(default_factory=dict, description="local name -> MusicBrainz artist id")
    artist_radio_breadth: int = 10
    artist_radio_depth: int = 3
    deep_limit: int = 50
    popular_limit: int = 50
    singles_limit: int = 50
    radio_limit: int = 25
    radio_search_limit: int = 1000
    radio_genres: List[str] = Field(default_factory=list)
    radio_series: List[str] = Field(default_factory=lambda: [
        "The Rolling Stone Magazine's 500 Greatest Songs of All Time",
    ])
    radio_other: Dict[str, str] = Field(default_factory=lambda: {
        "Series Hits": "+series:*",
        "Top Hits": "+popularity:1",
        "Top 3 Hits": "+popularity:<4",
        "Top 5 Hits": "+popularity:<6",
        "Top 10 Hits": "+popularity:<11",
        "Covers": "+type:cover",
        "Live Hits": "+type:live +popularity:<3",
    })
    radio_streams: List[RadioStream] = Field(default_factory=lambda: [
        RadioStream(
            creator="Ted Leibowitz",
            title="BAGeL Radio",
            image="https://cdn-profiles.tunein.com/s187420/images/logod.jpg",
            source=[
                ContentDescription(contentType="audio/mpeg", url="https://www.bagelradio.com/s/bagelradio.pls"),
                ContentDescription(contentType="audio/aac", url="http://ais-sa3.cdnstream1.com/2606_128.mp3"),
            ],
        ),
    ])
    recent_days: int = 365
    recent_limit: int = 50
    search_limit: int = 100
    similar_artists_limit: int = 10
    similar_releases_days: int = 365
    similar_releases_limit: int = 10
    related_artists_days: int = 10 * 365
    track_radio_breadth: int = 10
    track_radio_depth: int = 3
    # release picking prefers these countries, in order
    release_countries: List[str] = Field(default_factory=lambda: ["US", "GB", "XE", "XW"])


class DateRecommend(BaseModel):
    name: str
    match: str
    layout: str
    query: str


def _default_recommend() -> List[DateRecommend]:
    return [
        DateRecommend(match="Fri 13", layout="%a %d", name="Friday 13th Movies", query="+character:voorhees"),
        DateRecommend(match="Feb 14", layout="%b %d", name="Valentine's Day Movies", query="+genre:Romance"),
        DateRecommend(match="Mar 17", layout="%b %d", name="St. Patrick's Day Movies", query="+keyword:leprechaun"),
        DateRecommend(match="May 04", layout="%b %d", name="Star Wars Movies", query='+title:"star wars"'),
        DateRecommend(match="Oct", layout="%b", name="Halloween Movies", query="+keyword:halloween"),
        DateRecommend(match="Dec", layout="%b", name="Christmas Movies", query="+keyword:christmas +keyword:holiday"),
    ]


class FilmConfig(BaseModel):
    duplicate_resolution: str = PREFER_LARGEST
    release_countries: List[str] = Field(default_factory=lambda: ["US"])
    cast_limit: int = 25
    crew_jobs: List[str] = Field(default_factory=lambda: [
        "Director", "Executive Producer", "Novel", "Producer", "Screenplay", "Story",
    ])
    recent_days: int = 365
    recent_limit: int = 50
    search_limit: int = 100
    recommend: List[DateRecommend] = Field(default_factory=_default_recommend)

    @field_validator("duplicate_resolution")
    @classmethod
    def _known_policy(cls, v: str) -> str:
        if v not in (PREFER_LARGEST, PREFER_SMALLEST):
            raise ValueError(f"unsupported duplicate_resolution '{v}'")
        return v


class TVConfig(BaseModel):
    release_countries: List[str] = Field(default_factory=lambda: ["US"])
    cast_limit: int = 25
    crew_jobs: List[str] = Field(default_factory=lambda: ["Director", "Executive Producer", "Writer"])
    recent_limit: int = 50
    search_limit: int = 100


class PodcastConfig(BaseModel):
    series: List[str] = Field(default_factory=list)
    episode_limit: int = 52
    recent_limit: int = 25
    search_limit: int = 100


class MediaConfig(BaseModel):
    name: str = ""
    database_url: str = ""
    buckets: List[BucketConfig] = Field(default_factory=list)
    music: MusicConfig = Field(default_factory=MusicConfig)
    film: FilmConfig = Field(default_factory=FilmConfig)
    tv: TVConfig = Field(default_factory=TVConfig)
    podcast: PodcastConfig = Field(default_factory=PodcastConfig)

    def media_dir(self) -> Path:
        return Path(settings.MEDIA_DIR) / self.name

    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{(self.media_dir() / 'media.db').as_posix()}"

    def user_artist_id(self, name: str) -> Optional[str]:
        return self.music.artist_map.get(name)


def load_media_config(name: str) -> MediaConfig:
    """Read <MEDIA_DIR>/<name>/config.json; a missing file yields defaults.

    Invalid content (including an unknown duplicate policy) raises, which keeps
    a misconfigured collection from being served.
    """
    path = Path(settings.MEDIA_DIR) / name / "config.json"
    data = {}
    if path.exists():
        data = json.loads(path.read_text(encoding="utf-8"))
    data["name"] = name
    cfg = MediaConfig(**data)
    os.makedirs(cfg.media_dir(), exist_ok=True)
    return cfg
