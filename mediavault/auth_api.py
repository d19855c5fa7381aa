# mediavault/auth_api.py
"""Token and cookie login, refresh, and the authorization dependencies.

Routes declare which credentials they accept as a bitmask. Methods are tried
in order (access token, media token, cookie); a missing credential falls
through to the next method, any other failure is final. A bad cookie sends
the client to the login page.
"""
from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import FileResponse, JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .auth import ACCESS, Auth, session_expired, session_remaining, token_age
from .config import settings, split_paths
from .context import RequestContext, user_context
from .errors import AccessDenied, AccessDeniedRedirect, AuthError, NoToken, SessionExpired
from .models import Session

log = logging.getLogger("auth")

router = APIRouter(tags=["auth"])

ALLOW_ACCESS_TOKEN = 1
ALLOW_MEDIA_TOKEN = 2
ALLOW_COOKIE = 4


class Credentials(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user: str = Field(default="", validation_alias=AliasChoices("user", "User"))
    password: str = Field(default="", validation_alias=AliasChoices("pass", "Pass", "password"))
    passcode: str = Field(default="", validation_alias=AliasChoices("passcode", "Passcode"))


def get_auth(request: Request) -> Auth:
    return request.app.state.auth


def bearer_token(request: Request) -> str:
    """The Authorization header value, with or without the Bearer scheme."""
    value = (request.headers.get("Authorization") or "").strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    if not value:
        raise NoToken()
    return value


async def credentials_login(auth: Auth, creds: Credentials) -> Session:
    if creds.passcode:
        return await auth.passcode_login(creds.user, creds.password, creds.passcode)
    return await auth.login(creds.user, creds.password)


# -------- authorization --------
async def _cookie_user(auth: Auth, request: Request, response: Response):
    token = request.cookies.get(settings.APP_NAME)
    if not token:
        raise NoToken()
    try:
        user, session = await auth.cookie_user(token)
    except AuthError:
        raise AccessDeniedRedirect()
    response.set_cookie(**auth.cookie(session))
    # handlers returning their own Response drop these headers; see RefreshCookieMiddleware
    request.state.refreshed_cookie = response.headers["set-cookie"]
    return user, session


async def authorize(request: Request, response: Response, mask: int) -> RequestContext:
    auth = get_auth(request)
    if mask & ALLOW_ACCESS_TOKEN:
        try:
            return await user_context(request, await auth.check_access_token_user(bearer_token(request)))
        except NoToken:
            pass
    if mask & ALLOW_MEDIA_TOKEN:
        try:
            return await user_context(request, await auth.check_media_token_user(bearer_token(request)))
        except NoToken:
            pass
    if mask & ALLOW_COOKIE:
        try:
            user, session = await _cookie_user(auth, request, response)
            return await user_context(request, user, session)
        except NoToken:
            pass
    raise AuthError()


async def access_context(request: Request, response: Response) -> RequestContext:
    return await authorize(request, response, ALLOW_ACCESS_TOKEN | ALLOW_COOKIE)


async def media_context(request: Request, response: Response) -> RequestContext:
    return await authorize(request, response, ALLOW_MEDIA_TOKEN | ALLOW_COOKIE)


async def refresh_session(request: Request) -> Session:
    """The bearer token is a session token that must outlive a new access token."""
    auth = get_auth(request)
    s = await auth.token_session(bearer_token(request))
    if session_expired(s):
        await auth.delete_session(s)
        raise SessionExpired()
    if session_remaining(s) < token_age(ACCESS):
        raise SessionExpired()
    return s


# =======================
# Routes
# =======================

@router.post("/api/token")
async def token_login(creds: Credentials, auth: Auth = Depends(get_auth)):
    session = await credentials_login(auth, creds)
    log.info("%s: token login", session.user)
    return auth.tokens(session)


@router.get("/api/token")
async def token_refresh(session: Session = Depends(refresh_session), auth: Auth = Depends(get_auth)):
    # media token is unchanged on refresh
    access = auth.new_access_token(session)
    await auth.refresh(session)
    return {"AccessToken": access, "RefreshToken": session.token}


@router.post("/api/login")
async def cookie_login(creds: Credentials, auth: Auth = Depends(get_auth)):
    session = await credentials_login(auth, creds)
    log.info("%s: cookie login", session.user)
    resp = JSONResponse({"ok": True, "user": session.user})
    resp.set_cookie(**auth.cookie(session))
    return resp


@router.post("/api/logout", status_code=204)
async def logout(ctx: RequestContext = Depends(access_context)):
    if ctx.session is not None:
        await ctx.auth.delete_session(ctx.session)
    resp = Response(status_code=204)
    resp.delete_cookie(settings.APP_NAME, path="/")
    return resp


# -------- file downloads --------
def _under(path: str, root: str) -> bool:
    # whole path components only; /media/music does not contain /media/music-private
    root = os.path.abspath(root)
    return os.path.commonpath([path, root]) == root


def allowed_path(path: str) -> bool:
    """Path must be absolute, free of "..", inside an included dir and outside excluded ones."""
    if not path or path == "/" or not path.startswith("/") or ".." in path.split("/"):
        return False
    path = os.path.normpath(path)
    include = split_paths(settings.INCLUDE_DIRS)
    if include and not any(_under(path, d) for d in include):
        return False
    return not any(_under(path, d) for d in split_paths(settings.EXCLUDE_DIRS))


@router.get("/d/{path:path}")
async def download(path: str, token: str = "", auth: Auth = Depends(get_auth)):
    path = "/" + path.lstrip("/")
    if not allowed_path(path):
        raise AccessDenied()
    if not token:
        raise NoToken()
    auth.check_file_token(token, path)
    if not os.path.isfile(path):
        raise HTTPException(404, "Not found")
    return FileResponse(path)
