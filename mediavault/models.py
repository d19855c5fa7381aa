# mediavault/models.py
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, Integer, BigInteger, DateTime, Index, LargeBinary, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class EventKind(str, enum.Enum):
    track = "track"
    movie = "movie"
    episode = "episode"


# ---- Users & Sessions ----
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    key: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    salt: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    totp: Mapped[Optional[str]] = mapped_column(Text, default=None)
    media: Mapped[str] = mapped_column(String(400), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def media_list(self) -> List[str]:
        return [m.strip() for m in (self.media or "").split(",") if m.strip()]

    @property
    def first_media(self) -> str:
        lst = self.media_list
        return lst[0] if lst else ""


class Session(Base):
    __tablename__ = "sessions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Code(Base):
    """Device pairing code; `token` holds the linked session token once authorized."""
    __tablename__ = "codes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    value: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    token: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def linked(self) -> bool:
        return bool(self.token)


# ---- Progress ----
class Offset(Base):
    __tablename__ = "offsets"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    etag: Mapped[str] = mapped_column(String(255), index=True)
    offset: Mapped[int] = mapped_column(BigInteger, default=0)
    duration: Mapped[int] = mapped_column(BigInteger, default=0)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("ix_offsets_user_etag", "user", "etag"),)


# ---- Activity ----
class TrackEvent(Base):
    __tablename__ = "track_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    date: Mapped[datetime] = mapped_column(DateTime, index=True)
    rid: Mapped[str] = mapped_column(String(64), default="", index=True)
    rgid: Mapped[str] = mapped_column(String(64), default="")
    etag: Mapped[str] = mapped_column(String(255), default="")

    __table_args__ = (Index("ix_track_events_user_date", "user", "date"),)


class MovieEvent(Base):
    __tablename__ = "movie_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    date: Mapped[datetime] = mapped_column(DateTime, index=True)
    tmid: Mapped[str] = mapped_column(String(32), default="")
    imid: Mapped[str] = mapped_column(String(32), default="")
    etag: Mapped[str] = mapped_column(String(255), default="")


class EpisodeEvent(Base):
    __tablename__ = "episode_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(120), index=True)
    date: Mapped[datetime] = mapped_column(DateTime, index=True)
    eid: Mapped[str] = mapped_column(String(64), default="")
