# mediavault/main.py
from __future__ import annotations

# ── Logging first so module loggers pick it up ────────────────────────────────
import logging, logging.config
logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"std": {"format": "%(levelname)s  %(name)s: %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "std"}},
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "sqlalchemy":        {"level": "WARNING", "handlers": ["console"], "propagate": False},
        "sqlalchemy.engine": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        "sqlalchemy.pool":   {"level": "WARNING", "handlers": ["console"], "propagate": False},
        "sync":              {"level": "INFO",    "handlers": ["console"], "propagate": False},
        "scheduler":         {"level": "INFO",    "handlers": ["console"], "propagate": False},
    },
})

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.datastructures import MutableHeaders
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from .activity import Activity
from .activity_api import router as activity_router
from .auth import Auth
from .auth_api import router as auth_router
from .config import settings, split_paths
from .database import dispose_all, init_db
from .errors import AccessDeniedRedirect, MediaVaultError
from .music_api import router as music_router
from .nav_api import router as nav_router
from .pairing import router as pairing_router
from .playlist_api import router as playlist_router
from .podcast_api import router as podcast_router
from .progress import Progress
from .scheduler import start_scheduler, stop_scheduler
from .video_api import router as video_router

log = logging.getLogger("mediavault")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    app.state.auth = Auth()
    app.state.activity = Activity()
    app.state.progress = Progress()
    if settings.SCHEDULER_ENABLED:
        start_scheduler(app)
    try:
        yield
    finally:
        await stop_scheduler(app)
        await dispose_all()


# ── App setup ─────────────────────────────────────────────────────────────────
app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

# ── Middleware ────────────────────────────────────────────────────────────────
app.add_middleware(GZipMiddleware, minimum_size=1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=split_paths(settings.ALLOW_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Lightweight perf log for slow requests (ASGI-safe to avoid BaseHTTPMiddleware edge cases)
class PerfLoggerMiddleware:
    def __init__(self, app, threshold_ms: float = 800):
        self.app = app
        self.threshold_ms = threshold_ms
        self.log = logging.getLogger("perf")

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        t0 = time.perf_counter()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = message.get("status", status_code)
            return await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dt = (time.perf_counter() - t0) * 1000
            if dt > self.threshold_ms:
                self.log.warning("%s %s -> %d %0.0fms", scope.get("method", ""), scope.get("path", ""), status_code, dt)


app.add_middleware(PerfLoggerMiddleware)


# The refreshed session cookie is set on the dependency Response, which FastAPI only merges
# into plain return values. Add it to any response that does not set the cookie itself.
class RefreshCookieMiddleware:
    def __init__(self, app):
        self.app = app
        self.prefix = f"{settings.APP_NAME}="

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        state = scope.setdefault("state", {})

        async def send_wrapper(message):
            cookie = state.get("refreshed_cookie")
            if cookie and message.get("type") == "http.response.start":
                headers = MutableHeaders(scope=message)
                if not any(v.startswith(self.prefix) for v in headers.getlist("set-cookie")):
                    headers.append("set-cookie", cookie)
            return await send(message)

        await self.app(scope, receive, send_wrapper)


app.add_middleware(RefreshCookieMiddleware)


# ── Errors ────────────────────────────────────────────────────────────────────
@app.exception_handler(MediaVaultError)
async def mediavault_error(request: Request, exc: MediaVaultError):
    if isinstance(exc, AccessDeniedRedirect):
        return RedirectResponse(url="/login", status_code=307)
    if exc.status >= 500:
        log.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"detail": exc.code}, status_code=exc.status)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    log.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse({"detail": "server-error"}, status_code=500)


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(pairing_router)
app.include_router(nav_router)
app.include_router(music_router)
app.include_router(video_router)
app.include_router(podcast_router)
app.include_router(playlist_router)
app.include_router(activity_router)


@app.get("/health")
async def health():
    return {"ok": True, "name": settings.APP_NAME, "version": settings.APP_VERSION}
