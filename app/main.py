from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Callable, Deque

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import models  # noqa: F401
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.base import Base
from app.db.session import engine
from app.routers import admin, auth, groups, messages


class RateLimiter:
    def __init__(self, limit_per_minute: int, clock: Callable[[], float] | None = None) -> None:
        self.limit_per_minute = limit_per_minute
        self.clock = clock or (lambda: datetime.now(timezone.utc).timestamp())
        self._hits: dict[str, Deque[float]] = defaultdict(deque)
        self._last_prune = 0.0

    def hit(self, key: str) -> bool:
        now = self.clock()
        window_start = now - 60
        if now - self._last_prune >= 60:
            self._prune(window_start)
            self._last_prune = now
        bucket = self._hits[key]
        while bucket and bucket[0] < window_start:
            bucket.popleft()
        if len(bucket) >= self.limit_per_minute:
            return False
        bucket.append(now)
        return True

    def _prune(self, window_start: float) -> None:
        # Drop clients with no hits inside the window.
        stale = [key for key, bucket in self._hits.items() if not bucket or bucket[-1] < window_start]
        for key in stale:
            del self._hits[key]


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    limiter = RateLimiter(settings.rate_limit_per_minute)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        key = request.client.host if request.client else "unknown"
        if not limiter.hit(key):
            return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content={"detail": "Rate limit exceeded"})
        return await call_next(request)

    app.include_router(auth.router)
    app.include_router(groups.router)
    app.include_router(messages.router)
    app.include_router(admin.router)

    @app.on_event("startup")
    def startup() -> None:
        if settings.auto_create_tables:
            Base.metadata.create_all(bind=engine)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
