# mediavault/auth.py
"""Users, sessions, pairing codes and the four token families.

Sessions are opaque UUID tokens stored in the main database. Access, media and
code tokens are JWTs whose subject is the user name (or code value); file
tokens carry the file path as audience.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update

from .config import settings
from .database import get_sessionmaker
from .errors import (
    AccessDenied, CodeAlreadyUsed, CodeExpired, CodeNotFound, InvalidPasscode,
    InvalidToken, InvalidTokenSecret, KeyMismatch, MissingTOTP, PasscodeRequired,
    SessionNotFound, UserExists, UserNotFound,
)
from .models import Code, Session, User
from .utils import (
    as_utc, check_password, create_token, decode_token, derive_key, new_salt,
    totp_secret, utcnow, validate_passcode, verify_password,
)

log = logging.getLogger("auth")

CODE_CHARS = "123456789ABCDEFGHILKMNPQRSTUVWXYZ"
CODE_SIZE = 6

ACCESS = "ACCESS"
MEDIA = "MEDIA"
CODE = "CODE"
FILE = "FILE"
TOKEN_FAMILIES = (ACCESS, MEDIA, CODE, FILE)


def random_code() -> str:
    return "".join(secrets.choice(CODE_CHARS) for _ in range(CODE_SIZE))


def session_remaining(s: Session) -> timedelta:
    return as_utc(s.expires) - utcnow()


def session_expired(s: Session) -> bool:
    return as_utc(s.expires) <= utcnow()


def code_expired(c: Code) -> bool:
    return as_utc(c.expires) <= utcnow()


def read_secret(family: str) -> str:
    """Secret for a token family from settings, or from the configured file."""
    value = getattr(settings, f"{family}_TOKEN_SECRET", "") or ""
    if not value:
        path = getattr(settings, f"{family}_TOKEN_SECRET_FILE", "") or ""
        if path:
            try:
                value = Path(path).read_text(encoding="utf-8").strip()
            except OSError as e:
                raise InvalidTokenSecret(message=f"{family.lower()} secret: {e}")
    if not value:
        raise InvalidTokenSecret(message=f"{family.lower()} token secret is not configured")
    return value


def token_age(family: str) -> timedelta:
    return timedelta(minutes=getattr(settings, f"{family}_TOKEN_AGE_MINUTES"))


class Auth:
    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url
        # fail fast on a missing or unreadable secret
        self.secrets: Dict[str, str] = {f: read_secret(f) for f in TOKEN_FAMILIES}

    def _session(self):
        return get_sessionmaker(self.db_url)()

    # =======================
    # Users
    # =======================

    async def user(self, name: str) -> User:
        async with self._session() as db:
            u = (await db.execute(select(User).where(User.name == name))).scalars().first()
        if u is None:
            raise UserNotFound()
        return u

    async def users(self) -> List[User]:
        async with self._session() as db:
            return list((await db.execute(select(User).order_by(User.name))).scalars().all())

    async def add_user(self, name: str, password: str) -> User:
        check_password(password)
        salt = new_salt()
        u = User(name=name, key=derive_key(password, salt), salt=salt, media="")
        async with self._session() as db:
            if await db.scalar(select(User.id).where(User.name == name)) is not None:
                raise UserExists()
            db.add(u)
            await db.commit()
        log.info("added user %s", name)
        return u

    async def change_password(self, name: str, password: str) -> None:
        check_password(password)
        salt = new_salt()
        async with self._session() as db:
            res = await db.execute(
                update(User).where(User.name == name).values(key=derive_key(password, salt), salt=salt))
            if res.rowcount == 0:
                raise UserNotFound()
            await db.commit()

    async def assign_totp(self, name: str, uri: str) -> None:
        async with self._session() as db:
            res = await db.execute(update(User).where(User.name == name).values(totp=uri or None))
            if res.rowcount == 0:
                raise UserNotFound()
            await db.commit()

    async def assign_media(self, name: str, media: str) -> None:
        async with self._session() as db:
            res = await db.execute(update(User).where(User.name == name).values(media=media))
            if res.rowcount == 0:
                raise UserNotFound()
            await db.commit()

    async def assigned_media(self) -> List[str]:
        """Distinct media collection names across all users, in first-seen order."""
        seen: List[str] = []
        for u in await self.users():
            for m in u.media_list:
                if m not in seen:
                    seen.append(m)
        return seen

    async def _check(self, name: str, password: str) -> User:
        u = await self.user(name)
        if not verify_password(password, u.salt, u.key):
            raise KeyMismatch()
        return u

    # =======================
    # Sessions
    # =======================

    async def _new_session(self, u: User) -> Session:
        s = Session(
            user=u.name,
            token=str(uuid.uuid4()),
            expires=utcnow() + timedelta(hours=settings.SESSION_AGE_HOURS),
        )
        async with self._session() as db:
            db.add(s)
            await db.commit()
        return s

    async def login(self, name: str, password: str) -> Session:
        u = await self._check(name, password)
        if u.totp:
            raise PasscodeRequired()
        return await self._new_session(u)

    async def passcode_login(self, name: str, password: str, passcode: str) -> Session:
        u = await self._check(name, password)
        if not u.totp:
            raise MissingTOTP()
        if not validate_passcode(passcode, totp_secret(u.totp)):
            raise InvalidPasscode()
        return await self._new_session(u)

    async def token_session(self, token: str) -> Session:
        async with self._session() as db:
            s = (await db.execute(select(Session).where(Session.token == token))).scalars().first()
        if s is None:
            raise SessionNotFound()
        return s

    async def session_user(self, s: Session) -> User:
        return await self.user(s.user)

    async def refresh(self, s: Session) -> Session:
        expires = utcnow() + timedelta(hours=settings.SESSION_AGE_HOURS)
        async with self._session() as db:
            await db.execute(update(Session).where(Session.id == s.id).values(expires=expires))
            await db.commit()
        s.expires = expires
        return s

    async def delete_session(self, s: Session) -> None:
        async with self._session() as db:
            await db.execute(delete(Session).where(Session.id == s.id))
            await db.commit()

    async def expire_all(self, name: str) -> None:
        u = await self.user(name)
        async with self._session() as db:
            await db.execute(update(Session).where(Session.user == u.name).values(expires=utcnow()))
            await db.commit()

    async def delete_expired_sessions(self) -> int:
        async with self._session() as db:
            res = await db.execute(delete(Session).where(Session.expires < utcnow()))
            await db.commit()
        return res.rowcount or 0

    # =======================
    # Tokens
    # =======================

    def _new_token(self, family: str, *, subject: str = "", audience: str = "") -> str:
        return create_token(self.secrets[family], token_age(family), subject=subject, audience=audience)

    def new_access_token(self, s: Session) -> str:
        return self._new_token(ACCESS, subject=s.user)

    def new_media_token(self, s: Session) -> str:
        return self._new_token(MEDIA, subject=s.user)

    def new_code_token(self, value: str) -> str:
        return self._new_token(CODE, subject=value)

    def new_file_token(self, path: str) -> str:
        return self._new_token(FILE, audience=path)

    def tokens(self, s: Session) -> Dict[str, Any]:
        return {
            "AccessToken": self.new_access_token(s),
            "MediaToken": self.new_media_token(s),
            "RefreshToken": s.token,
        }

    async def check_access_token_user(self, token: str) -> User:
        claims = decode_token(token, self.secrets[ACCESS])
        return await self.user(claims.get("sub", ""))

    async def check_media_token_user(self, token: str) -> User:
        claims = decode_token(token, self.secrets[MEDIA])
        return await self.user(claims.get("sub", ""))

    async def check_code_token(self, token: str) -> Code:
        claims = decode_token(token, self.secrets[CODE])
        code = await self.valid_code(claims.get("sub", ""))
        if code is None:
            raise InvalidToken("invalid-token-subject")
        return code

    def check_file_token(self, token: str, path: str) -> None:
        # audience must be exactly this path
        decode_token(token, self.secrets[FILE], audience=path)

    # =======================
    # Pairing codes
    # =======================

    async def generate_code(self) -> Code:
        c = Code(value=random_code(), expires=utcnow() + timedelta(minutes=settings.CODE_AGE_MINUTES))
        async with self._session() as db:
            db.add(c)
            await db.commit()
        return c

    async def lookup_code(self, value: str) -> Optional[Code]:
        async with self._session() as db:
            return (await db.execute(select(Code).where(Code.value == value))).scalars().first()

    async def valid_code(self, value: str) -> Optional[Code]:
        c = await self.lookup_code(value)
        if c is None or code_expired(c):
            return None
        return c

    async def linked_code(self, value: str) -> Optional[Code]:
        c = await self.valid_code(value)
        if c is None or not c.linked:
            return None
        return c

    async def authorize_code(self, value: str, token: str) -> None:
        c = await self.lookup_code(value)
        if c is None:
            raise CodeNotFound()
        if code_expired(c):
            raise CodeExpired()
        if c.linked:
            raise CodeAlreadyUsed()
        async with self._session() as db:
            await db.execute(update(Code).where(Code.id == c.id).values(token=token))
            await db.commit()

    async def check_code(self, value: str) -> Dict[str, Any]:
        """Tokens for the session linked to a code; access-denied until linked."""
        c = await self.linked_code(value)
        if c is None:
            raise AccessDenied()
        s = await self.token_session(c.token)
        if session_expired(s):
            raise AccessDenied()
        return self.tokens(s)

    async def delete_expired_codes(self) -> int:
        async with self._session() as db:
            res = await db.execute(delete(Code).where(Code.expires < utcnow()))
            await db.commit()
        return res.rowcount or 0

    # =======================
    # Cookie
    # =======================

    def cookie(self, s: Session) -> Dict[str, Any]:
        """Keyword arguments for Response.set_cookie()."""
        return {
            "key": settings.APP_NAME,
            "value": s.token,
            "max_age": max(0, int(session_remaining(s).total_seconds())),
            "path": "/",
            "secure": settings.COOKIE_SECURE,
            "httponly": True,
            "samesite": "strict",
        }

    async def cookie_user(self, token: str) -> tuple[User, Session]:
        s = await self.token_session(token)
        if session_expired(s):
            await self.delete_session(s)
            raise SessionNotFound("session-expired")
        try:
            u = await self.session_user(s)
        except UserNotFound:
            await self.delete_session(s)
            raise
        return u, s
