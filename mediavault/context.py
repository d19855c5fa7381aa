# mediavault/context.py
"""Per-request bundle of the authenticated user and the services handlers use.

Built by the auth dependencies once the user is known; route handlers take a
RequestContext instead of reaching for module globals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from .activity import Activity
from .auth import Auth
from .client import Getter
from .errors import NoMedia
from .images import ImageCache, image_reader
from .media import Media, get_media
from .models import Session, User
from .progress import Progress


@dataclass
class RequestContext:
    auth: Auth
    user: User
    media: Media
    activity: Activity
    progress: Progress
    session: Optional[Session] = None
    images: ImageCache = field(default_factory=image_reader)

    @property
    def name(self) -> str:
        return self.user.name

    @property
    def music(self):
        return self.media.music

    @property
    def film(self):
        return self.media.film

    @property
    def tv(self):
        return self.media.tv

    @property
    def podcast(self):
        return self.media.podcast

    def getter(self) -> Getter:
        return Getter(max_age=0)


def app_services(request: Request):
    st = request.app.state
    return st.auth, st.activity, st.progress


async def user_context(request: Request, user: User, session: Optional[Session] = None) -> RequestContext:
    """Context for `user`; a user without an assigned media collection is refused."""
    if not user.first_media:
        raise NoMedia()
    auth, activity, progress = app_services(request)
    media = await get_media(user.first_media)
    ctx = RequestContext(auth=auth, user=user, media=media, activity=activity, progress=progress, session=session)
    request.state.ctx = ctx
    return ctx
