# mediavault/utils.py
from __future__ import annotations
import re
import hmac
import math
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Any

import pyotp
from jose import jwt, JWTError, ExpiredSignatureError
from jose.exceptions import JWTClaimsError

from .config import settings
from .errors import (
    InvalidToken, TokenExpired, WeakPassword,
)

# =======================
# Password utilities
# =======================

SALT_BYTES = 8
KEY_BYTES = 32
SCRYPT_N = 32768
SCRYPT_R = 8
SCRYPT_P = 1


def new_salt() -> bytes:
    return secrets.token_bytes(SALT_BYTES)


def derive_key(password: str, salt: bytes) -> bytes:
    # N*r*128 = 32 MiB; raise maxmem above OpenSSL's 32 MiB default
    return hashlib.scrypt(
        password.encode("utf-8"), salt=salt,
        n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P,
        maxmem=64 * 1024 * 1024, dklen=KEY_BYTES,
    )


def verify_password(password: str, salt: bytes, key: bytes) -> bool:
    return hmac.compare_digest(derive_key(password, salt), key)


_REPLACE_CHARS = " _-,."
_SEP_CHARS = "!\"#$%&'()*+/:;<=>?@[\\]^`{|}~"


def password_entropy(password: str) -> float:
    """Bits of entropy: log2(character pool size) * effective length.

    The pool grows by character class present (lower, upper, digits, common
    separators, other symbols). Runs of the same character longer than two
    only count twice, and a few keyboard/alphabet sequences count once.
    """
    if not password:
        return 0.0
    base = 0
    if any(c.islower() and c.isascii() for c in password):
        base += 26
    if any(c.isupper() and c.isascii() for c in password):
        base += 26
    if any(c.isdigit() for c in password):
        base += 10
    if any(c in _REPLACE_CHARS for c in password):
        base += len(_REPLACE_CHARS)
    if any(c in _SEP_CHARS for c in password):
        base += len(_SEP_CHARS)
    others = {c for c in password if not c.isascii()}
    base += len(others)

    s = password
    for seq in ("0123456789", "abcdefghijklmnopqrstuvwxyz", "qwertyuiop", "asdfghjkl", "zxcvbnm"):
        s = _collapse_sequence(s, seq)
    length = len(re.sub(r"(.)\1{2,}", r"\1\1", s))
    return math.log2(base) * length if base > 1 else 0.0


def _collapse_sequence(s: str, seq: str) -> str:
    # replace runs of 3+ consecutive characters from seq with a single char
    for n in range(len(seq), 2, -1):
        for i in range(len(seq) - n + 1):
            chunk = seq[i:i + n]
            s = re.sub(re.escape(chunk), chunk[0], s, flags=re.I)
    return s


def check_password(password: str, min_entropy: Optional[float] = None) -> None:
    need = settings.PASSWORD_MIN_ENTROPY if min_entropy is None else min_entropy
    if password_entropy(password) < need:
        raise WeakPassword(message="insecure password, try a longer or more varied one")


# =======================
# TOTP
# =======================

def new_totp_uri(name: str) -> str:
    return pyotp.TOTP(pyotp.random_base32()).provisioning_uri(name=name, issuer_name=settings.APP_NAME)


def totp_secret(uri: str) -> str:
    return pyotp.parse_uri(uri).secret


def generate_passcode(secret: str) -> str:
    return pyotp.TOTP(secret).now()


def validate_passcode(passcode: str, secret: str) -> bool:
    if not passcode:
        return False
    return pyotp.TOTP(secret).verify(passcode, valid_window=1)


# =======================
# JWT helpers
# =======================

ALGO = "HS256"


def create_token(secret: str, age: timedelta, *, subject: str = "", audience: str = "",
                 issuer: Optional[str] = None) -> str:
    """
    Create a signed JWT with 'iss', 'exp' and either 'sub' or 'aud'.
    """
    now = datetime.now(timezone.utc)
    data: dict[str, Any] = {
        "iss": issuer or settings.TOKEN_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + age).timestamp()),
    }
    if subject:
        data["sub"] = subject
    if audience:
        data["aud"] = audience
    return jwt.encode(data, secret, algorithm=ALGO)


def decode_token(token: str, secret: str, *, audience: Optional[str] = None,
                 issuer: Optional[str] = None) -> dict[str, Any]:
    """
    Verify and decode a JWT. Raises InvalidToken/TokenExpired on failure.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise InvalidToken("invalid-token-claims")
    if header.get("alg") != ALGO:
        raise InvalidToken("invalid-token-method")

    options = {"verify_aud": audience is not None, "verify_iss": False}
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGO], audience=audience, options=options)
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTClaimsError as e:
        if "audience" in str(e).lower():
            raise InvalidToken("invalid-token-audience")
        raise InvalidToken("invalid-token-claims")
    except JWTError:
        raise InvalidToken("invalid-token-claims")

    if claims.get("iss") != (issuer or settings.TOKEN_ISSUER):
        raise InvalidToken("invalid-token-issuer")
    if not claims.get("sub") and not claims.get("aud"):
        raise InvalidToken("invalid-token-claims")
    return claims


# =======================
# General helpers
# =======================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def md5_hex(s: str) -> str:
    return hashlib.md5(s.encode("utf-8")).hexdigest()


_SORT_RE = re.compile(r"^(A|An|The)\s+(.+)$")


def sort_title(title: str) -> str:
    """'The Matrix' -> 'Matrix, The'"""
    m = _SORT_RE.match(title or "")
    if m:
        return f"{m.group(2)}, {m.group(1)}"
    return title or ""


_FUZZY_RE = re.compile(r"[^a-zA-Z0-9]")


def fuzzy_name(name: str) -> str:
    return _FUZZY_RE.sub("", name or "").casefold()


_FIX_NAME = (
    ("‐", "-"), ("‑", "-"), ("‒", "-"), ("–", "-"), ("—", "-"),
    ("‘", "'"), ("’", "'"), ("“", '"'), ("”", '"'), ("…", "..."),
)


def fix_name(name: str) -> str:
    """Normalize typographic quotes and dashes so names match local paths."""
    for a, b in _FIX_NAME:
        name = name.replace(a, b)
    return name.strip()
