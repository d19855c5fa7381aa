# tests/conftest.py
import os

# secrets and flags must be in the environment before mediavault.config loads
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("MEDIA_TOKEN_SECRET", "test-media-secret")
os.environ.setdefault("CODE_TOKEN_SECRET", "test-code-secret")
os.environ.setdefault("FILE_TOKEN_SECRET", "test-file-secret")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"

import json
from datetime import datetime

import pytest
import pytest_asyncio

from mediavault.activity import Activity
from mediavault.auth import Auth
from mediavault.config import settings
from mediavault.context import RequestContext
from mediavault.database import dispose_all, init_db
from mediavault.media import clear_media, get_media
from mediavault.media_models import Artist, Popular, Release, Station, StationType, Track
from mediavault.progress import Progress

USER = "alice"
PASSWORD = "correct-horse-battery-staple-42"
MEDIA = "test"

SOMETHING_UUID = "65de7d6e-faae-4592-a3b8-81eabd18f212"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Fresh main database, media dir and image cache per test."""
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{(tmp_path / 'main.db').as_posix()}")
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "MEDIA_DIR", str(tmp_path / "media"))
    monkeypatch.setattr(settings, "IMAGE_CACHE_DIR", str(tmp_path / "imagecache"))
    monkeypatch.setattr(settings, "INCLUDE_DIRS", "")
    monkeypatch.setattr(settings, "EXCLUDE_DIRS", "")
    clear_media()
    yield tmp_path
    clear_media()


@pytest.fixture
def music_root(tmp_path):
    """A filesystem music bucket with one real file, configured for the test collection."""
    root = tmp_path / "music"
    album = root / "The Beatles" / "Abbey Road (1969)"
    album.mkdir(parents=True)
    (album / "02-Something.mp3").write_bytes(b"ID3 not really an mp3")
    media_dir = tmp_path / "media" / MEDIA
    media_dir.mkdir(parents=True)
    (media_dir / "config.json").write_text(json.dumps({
        "buckets": [{"media": "music", "fs_root": root.as_posix()}],
    }), encoding="utf-8")
    return root


def track_key(root, num: int, title: str) -> str:
    return (root / "The Beatles" / "Abbey Road (1969)" / f"{num:02d}-{title}.mp3").as_posix()


async def seed_music(media, root) -> None:
    """Three Abbey Road tracks, popularity for two of them, and a station."""
    async with media.session() as db:
        db.add(Artist(id=1, name="The Beatles", sort_name="Beatles, The",
                      arid="b10bbbfc-cf9e-42e0-be17-e2c3e1d2600d"))
        db.add(Release(id=1, artist="The Beatles", name="Abbey Road", sort_name="Abbey Road",
                       reid="re-abbey", rgid="rg-abbey", type="Album", track_count=3, disc_count=1,
                       date=datetime(1969, 9, 26), release_date=datetime(1969, 9, 26)))
        for id, num, title, uuid, etag, rid in (
            (101, 1, "Come Together", "3d6a4c2e-0f1b-4c55-9a59-0c1f0f9c1e01", "etag-101", "rid-101"),
            (102, 2, "Something", SOMETHING_UUID, "E", "R"),
            (103, 7, "Here Comes the Sun", "3d6a4c2e-0f1b-4c55-9a59-0c1f0f9c1e03", "etag-103", "rid-103"),
        ):
            db.add(Track(id=id, uuid=uuid, artist="The Beatles", release="Abbey Road", date="1969",
                         title=title, track_num=num, disc_num=1, track_count=3, disc_count=1,
                         release_title="Abbey Road", release_date=datetime(1969, 9, 26),
                         rid=rid, rgid="rg-abbey", reid="re-abbey", key=track_key(root, num, title),
                         size=1000 + id, etag=etag))
        db.add(Popular(artist="The Beatles", title="Here Comes the Sun", rank=1))
        db.add(Popular(artist="The Beatles", title="Come Together", rank=2))
        db.add(Station(user=USER, type=StationType.artist.value, name="Beatles Radio",
                       sort_name="Beatles Radio", creator="The Beatles", ref="/music/artists/1/popular"))
        await db.commit()
    await media.music_index.index({
        track_key(root, num, title): {"title": title, "artist": "The Beatles", "release": "Abbey Road",
                                      "popularity": rank}
        for num, title, rank in ((1, "Come Together", 2), (2, "Something", 0), (7, "Here Comes the Sun", 1))
    })


async def seed_user(auth: Auth) -> None:
    await auth.add_user(USER, PASSWORD)
    await auth.assign_media(USER, MEDIA)


async def seed_all(auth: Auth, root) -> None:
    await seed_user(auth)
    await seed_music(await get_media(MEDIA), root)


@pytest_asyncio.fixture
async def auth():
    await init_db()
    yield Auth()
    await dispose_all()


@pytest_asyncio.fixture
async def ctx(auth, music_root):
    """Request context for the seeded user, outside of any HTTP request."""
    await seed_user(auth)
    media = await get_media(MEDIA)
    await seed_music(media, music_root)
    return RequestContext(auth=auth, user=await auth.user(USER), media=media,
                          activity=Activity(), progress=Progress())


@pytest.fixture
def client(music_root):
    from fastapi.testclient import TestClient

    from mediavault.main import app

    with TestClient(app) as c:
        # seed on the app's own event loop so pooled connections stay on it
        c.portal.call(seed_all, app.state.auth, music_root)
        yield c


def login(client, user: str = USER, password: str = PASSWORD) -> dict:
    r = client.post("/api/token", json={"user": user, "pass": password})
    assert r.status_code == 200, r.text
    return r.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def day_end(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 23, 59, 59, 999999)
