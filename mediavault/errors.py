# mediavault/errors.py
"""Error kinds surfaced by the core.

Every error carries a kebab-case ``code`` (the client-visible detail) and the
HTTP status it maps to. ``main.py`` installs the handler that turns them into
JSON responses; anything else becomes a generic 500.
"""
from __future__ import annotations


class MediaVaultError(Exception):
    status = 500
    code = "server-error"

    def __init__(self, code: str | None = None, message: str | None = None):
        if code:
            self.code = code
        super().__init__(message or self.code)


# -------- auth (401) --------
class AuthError(MediaVaultError):
    status = 401
    code = "unauthorized"


class UserNotFound(AuthError):
    code = "user-not-found"


class KeyMismatch(AuthError):
    code = "key-mismatch"


class MissingTOTP(AuthError):
    code = "missing-totp"


class PasscodeRequired(AuthError):
    code = "passcode-required"


class InvalidPasscode(AuthError):
    code = "invalid-passcode"


class SessionNotFound(AuthError):
    code = "session-not-found"


class SessionExpired(AuthError):
    code = "session-expired"


class TokenExpired(AuthError):
    code = "token-expired"


class InvalidToken(AuthError):
    """invalid-token-{method,issuer,claims,audience,subject}"""
    code = "invalid-token"


class InvalidTokenSecret(AuthError):
    code = "invalid-token-secret"


class CodeNotFound(AuthError):
    code = "code-not-found"


class CodeExpired(AuthError):
    code = "code-expired"


class CodeAlreadyUsed(AuthError):
    code = "code-already-used"


class NoToken(AuthError):
    """No credential of the requested kind was presented; the next method may apply."""
    code = "missing-token"


# -------- authorization --------
class AccessDenied(MediaVaultError):
    status = 403
    code = "access-denied"


class AccessDeniedRedirect(MediaVaultError):
    status = 307
    code = "access-denied-redirect"


# -------- resources --------
class NotFound(MediaVaultError):
    status = 404
    code = "not-found"


# -------- validation --------
class BadRequest(MediaVaultError):
    status = 400
    code = "invalid-content"


class WeakPassword(BadRequest):
    code = "weak-password"


class UserExists(BadRequest):
    status = 409
    code = "user-exists"


# -------- ingestion (logged, never surfaced to clients) --------
class IngestError(MediaVaultError):
    code = "ingest-error"


class DuplicateFound(IngestError):
    code = "duplicate-found"


class InvalidEpisode(IngestError):
    code = "invalid-episode"


class ReleaseTypeNotFound(IngestError):
    code = "release-type-not-found"


class NoMedia(MediaVaultError):
    status = 403
    code = "no-media"
