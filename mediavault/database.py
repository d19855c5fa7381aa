# mediavault/database.py
import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy import event
from .config import settings

for name in ("sqlalchemy.engine", "sqlalchemy.pool"):
    logging.getLogger(name).setLevel(logging.WARNING)

# users, sessions, codes, progress, activity
Base = declarative_base()
# catalogue of a single media collection (music, film, tv, podcasts, search)
MediaBase = declarative_base()

_engines: Dict[str, AsyncEngine] = {}
_sessionmakers: Dict[str, async_sessionmaker[AsyncSession]] = {}


def _set_sqlite_pragmas(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    cur.execute("PRAGMA temp_store=MEMORY;")
    cur.execute("PRAGMA busy_timeout=30000;")
    cur.close()


def get_engine(db_url: Optional[str] = None) -> AsyncEngine:
    """Engines are memoized per URL for the life of the process."""
    db_url = db_url or getattr(settings, "DATABASE_URL", None)
    if not db_url:
        raise RuntimeError("settings.DATABASE_URL is not set")
    engine = _engines.get(db_url)
    if engine is None:
        is_sqlite = db_url.startswith("sqlite")
        engine = create_async_engine(
            db_url,
            echo=False,
            future=True,
            pool_pre_ping=True,
            connect_args={"timeout": 30} if is_sqlite else {},  # reduce lock waits; seconds
        )
        if is_sqlite:
            event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
        _engines[db_url] = engine
    return engine


def get_sessionmaker(db_url: Optional[str] = None) -> async_sessionmaker[AsyncSession]:
    db_url = db_url or settings.DATABASE_URL
    maker = _sessionmakers.get(db_url)
    if maker is None:
        maker = async_sessionmaker(
            bind=get_engine(db_url),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        _sessionmakers[db_url] = maker
    return maker


async def init_db(db_url: Optional[str] = None) -> None:
    from . import models  # noqa: F401
    engine = get_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_media_db(db_url: str) -> None:
    from . import media_models  # noqa: F401
    engine = get_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(MediaBase.metadata.create_all)


async def dispose_all() -> None:
    for engine in list(_engines.values()):
        await engine.dispose()
    _engines.clear()
    _sessionmakers.clear()
