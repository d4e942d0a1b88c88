import os
import logging
import logging.config
import asyncio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
from sqlalchemy import text
from contextlib import asynccontextmanager

from app.db.base import Base
from app.db import models  # noqa: F401  (registers tables on Base.metadata)
from arq import create_pool
from arq.connections import RedisSettings
from app.core.config import APP_ENV, CORS_ORIGINS, DEV_ORIGINS, REDIS_URL, STORE_BACKEND, STORE_NAMESPACE
from app.core.store import MemoryStore, RedisStore
from app.db.session import engine, async_session
from app.api.routes import boards, cards, interactions, phases, surveys, system

# Load logging config if present
if os.path.exists("logging.conf"):
    logging.config.fileConfig("logging.conf", disable_existing_loggers=False)
logger = logging.getLogger("root")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")

    app.state.redis = None
    if REDIS_URL:
        app.state.redis = await create_pool(RedisSettings.from_dsn(REDIS_URL))

    if STORE_BACKEND == "redis":
        if app.state.redis is None:
            raise RuntimeError("STORE_BACKEND=redis requires REDIS_URL")
        app.state.store = RedisStore(app.state.redis, namespace=STORE_NAMESPACE)
    else:
        app.state.store = MemoryStore()
    logger.info(f"Board store: {STORE_BACKEND}")

    yield  # App runs here

    # Shutdown logic
    if isinstance(app.state.store, RedisStore):
        await app.state.store.close()
    if app.state.redis is not None:
        await app.state.redis.close()
        await app.state.redis.connection_pool.disconnect()
    logger.info("Shutting down...")


# Create FastAPI app with lifespan
app = FastAPI(
    title="Retro Board API",
    version="0.1",
    lifespan=lifespan,
)

# Dev-only CORS settings
if APP_ENV == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=DEV_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("CORS allowed for development environment")
else:
    logger.info("Running in production environment - CORS restricted")

if APP_ENV == "production" and CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# API routes
app.include_router(boards.router)
app.include_router(cards.router)
app.include_router(interactions.router)
app.include_router(phases.router)
app.include_router(surveys.router)
app.include_router(system.router)


@app.api_route("/api/health", methods=["GET", "HEAD"])
async def health(request: Request):
    status = {
        "api": "ok",
        "database": None,
        "store": STORE_BACKEND,
        "redis": None,
        "worker": None,
    }

    http_status = 200

    # --- Database check ---
    try:
        async with async_session() as db:
            await db.execute(text("SELECT 1"))
        status["database"] = "connected"
    except Exception as e:
        status["database"] = f"error: {e}"
        http_status = 503

    if request.app.state.redis is None:
        status["redis"] = "not configured"
        return JSONResponse(content=status, status_code=http_status)

    # --- Redis check with lazy reconnect + backoff ---
    try:
        redis = request.app.state.redis
        try:
            await redis.ping()
            status["redis"] = "connected"
        except Exception:
            logger.warning("Redis connection lost - attempting reconnect...")
            redis = await reconnect_redis_with_backoff()
            request.app.state.redis = redis
            if isinstance(request.app.state.store, RedisStore):
                request.app.state.store.redis = redis
            status["redis"] = "reinitialized"
    except Exception as e:
        status["redis"] = f"error: {e}"
        http_status = 503

    # --- Worker heartbeat ---
    try:
        heartbeat = await request.app.state.redis.get("arq:heartbeat")
        if heartbeat:
            last_heartbeat = datetime.fromtimestamp(float(heartbeat))
            status["worker"] = f"running (last heartbeat {last_heartbeat.isoformat()})"
        else:
            status["worker"] = "not reporting"
    except Exception as e:
        status["worker"] = f"error: {e}"

    return JSONResponse(content=status, status_code=http_status)


async def reconnect_redis_with_backoff(max_retries: int = 3, base_delay: float = 1.0):
    """
    Attempt to reconnect to Redis using exponential backoff.
    Returns the new Redis pool or raises after all retries fail.
    """
    for attempt in range(max_retries):
        try:
            redis = await create_pool(RedisSettings.from_dsn(REDIS_URL))
            await redis.ping()
            logger.info(f"Redis reconnected on attempt {attempt + 1}")
            return redis
        except Exception as e:
            wait_time = base_delay * (2**attempt)
            logger.warning(f"Redis reconnect attempt {attempt + 1} failed: {e}")
            await asyncio.sleep(wait_time)
    raise RuntimeError("Failed to reconnect to Redis after multiple attempts")
