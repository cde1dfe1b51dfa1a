from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from .db import init_db
from .routers import checkins
from .core.config import get_settings
from .core.errors import InvalidInstant, InvariantViolation, StorageError
from .core.redis import ping_redis
from .core.nats import nats_connect, nats_close

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    # best-effort connect to infra; check-ins work without both
    if settings.publish_events:
        try:
            await nats_connect()
        except Exception as exc:
            logger.warning("NATS unavailable at start-up: %s", exc)
    if settings.rl_enabled and not await ping_redis():
        logger.warning("Redis unavailable at start-up; scan rate limit fails open")
    yield
    await nats_close()

app = FastAPI(title="attendance-checkin-svc", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    if exc.retryable:
        return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"}, headers={"Retry-After": "1"})
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})

@app.exception_handler(InvariantViolation)
async def invariant_handler(request: Request, exc: InvariantViolation):
    logger.error("invariant violation on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})

@app.exception_handler(InvalidInstant)
async def invalid_instant_handler(request: Request, exc: InvalidInstant):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

app.include_router(checkins.router)

@app.get("/health")
async def health():
    return {"status": "ok", "service": "attendance-checkin-svc"}

Instrumentator().instrument(app).expose(app)
