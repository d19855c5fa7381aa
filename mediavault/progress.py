# mediavault/progress.py
"""Playback offsets per (user, etag), synced between a user's devices."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete, select, update

from .database import get_sessionmaker
from .errors import AccessDenied, BadRequest, NotFound
from .models import Offset
from .utils import as_utc

log = logging.getLogger("progress")

INSERTED = "inserted"
UPDATED = "updated"
TOO_OLD = "offset-too-old"
SAME = "offset-same"


class OffsetIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    etag: str = Field(validation_alias=AliasChoices("etag", "ETag"), min_length=1)
    offset: int = Field(default=0, ge=0, validation_alias=AliasChoices("offset", "Offset"))
    duration: int = Field(default=0, ge=0, validation_alias=AliasChoices("duration", "Duration"))
    date: datetime = Field(validation_alias=AliasChoices("date", "Date"))


def parse_offsets(payload: Any) -> List[OffsetIn]:
    """A list, {"offsets": [...]}, or a single offset; any invalid offset fails the batch."""
    if isinstance(payload, dict):
        items = payload.get("offsets", payload.get("Offsets", [payload]))
    else:
        items = payload
    if not isinstance(items, list):
        raise BadRequest("invalid-offset")
    try:
        return [OffsetIn.model_validate(o) for o in items]
    except ValidationError as e:
        raise BadRequest("invalid-offset", message=str(e))


class Progress:
    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url

    def _session(self):
        return get_sessionmaker(self.db_url)()

    async def offsets(self, user: str) -> List[Offset]:
        async with self._session() as db:
            return list((await db.execute(
                select(Offset).where(Offset.user == user).order_by(Offset.date.desc()))).scalars().all())

    async def offset(self, user: str, id: int) -> Offset:
        async with self._session() as db:
            o = (await db.execute(select(Offset).where(Offset.id == id))).scalars().first()
        if o is None:
            raise NotFound("offset-not-found")
        if o.user != user:
            raise AccessDenied()
        return o

    async def lookup_etag(self, user: str, etag: str) -> Optional[Offset]:
        async with self._session() as db:
            return (await db.execute(
                select(Offset).where(Offset.user == user, Offset.etag == etag))).scalars().first()

    async def update(self, user: str, new: OffsetIn) -> str:
        """Returns inserted, updated, offset-too-old or offset-same.

        The stored offset only moves forward in time; duration is replaced only
        when the new one is known.
        """
        date = as_utc(new.date)
        existing = await self.lookup_etag(user, new.etag)
        async with self._session() as db:
            if existing is None:
                db.add(Offset(user=user, etag=new.etag, offset=new.offset, duration=new.duration, date=date))
                await db.commit()
                return INSERTED
            stored = as_utc(existing.date)
            if date < stored:
                return TOO_OLD
            if date == stored:
                return SAME
            values = {"offset": new.offset, "date": date}
            if new.duration > 0:
                values["duration"] = new.duration
            await db.execute(update(Offset).where(Offset.id == existing.id).values(**values))
            await db.commit()
        return UPDATED

    async def delete(self, user: str, id: int) -> None:
        o = await self.offset(user, id)
        async with self._session() as db:
            await db.execute(delete(Offset).where(Offset.id == o.id))
            await db.commit()
        log.debug("%s: deleted offset %s", user, o.etag)
