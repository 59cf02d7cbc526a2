"""FastAPI application entry point."""
import os

# Force UTC before any module caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from arena.config import get_settings
from arena.version import APP_VERSION
from arena.routers import admin, challenges, games, health, player
from arena.utils.exceptions import AlreadySettledError, ArenaError

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "arena.log"
sql_log_file = logs_dir / "arena_sql.log"

# Rotating file handler for general logs (1MB max size, keep 5 backup files)
rotating_handler = RotatingFileHandler(
    log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# Rotating file handler for SQL logs
sql_rotating_handler = RotatingFileHandler(
    sql_log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
sql_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# Force=True overrides any configuration installed by uvicorn
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

# SQLAlchemy statements go to their own file only
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    """Drop transaction chatter and flatten multi-line statements."""

    def filter(self, record):
        if record.levelno == logging.INFO and hasattr(record, 'getMessage'):
            message = record.getMessage()

            if any(keyword in message for keyword in ['ROLLBACK', 'BEGIN', 'COMMIT', 'generated in']):
                return False

            if any(kw in message for kw in ['SELECT', 'UPDATE', 'DELETE', 'INSERT']):
                record.msg = ' '.join(message.split())
                record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


async def expiration_sweeper_cycle():
    """
    Background task that cancels and refunds pending challenges past their expiry.

    Runs every ``expiration_sweep_interval_seconds``; a failed pass is logged
    and the next one retries whatever is still expired.
    """
    from arena.tasks.expiration_sweeper import run_expiration_sweep

    startup_delay = settings.expiration_sweep_startup_delay_seconds
    logger.info(f"Expiration sweeper starting in {startup_delay}s")
    await asyncio.sleep(startup_delay)

    logger.info("Expiration sweeper starting main loop")

    while True:
        try:
            await run_expiration_sweep()
        except Exception as e:
            logger.error(f"Expiration sweeper cycle error: {e}")

        await asyncio.sleep(settings.expiration_sweep_interval_seconds)


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info("Arena Escrow API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info(f"Redis: {'Enabled' if settings.redis_url else 'In-Memory Fallback'}")
    logger.info("=" * 60)

    sweeper_task = None
    try:
        sweeper_task = asyncio.create_task(expiration_sweeper_cycle())
        logger.info(
            f"Expiration sweeper task started (runs every {settings.expiration_sweep_interval_seconds}s)"
        )
    except Exception as e:
        logger.error(f"Failed to start expiration sweeper: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down background tasks...")
        if sweeper_task:
            sweeper_task.cancel()
            try:
                await asyncio.wait_for(sweeper_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Expiration sweeper task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Expiration sweeper did not cancel within timeout, forcing shutdown")
            except Exception as e:
                logger.error(f"Error cancelling expiration sweeper: {e}")

        logger.info("Arena Escrow API Shutting Down... Goodbye!")


app = FastAPI(
    title="Arena Escrow API",
    description="Wagered challenge escrow and settlement",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors
        }
    )


@app.exception_handler(ArenaError)
async def arena_exception_handler(request: Request, exc: ArenaError):
    """Translate engine guard failures into ``{"detail": code, "message": ...}``."""
    if isinstance(exc, AlreadySettledError):
        logger.info(f"{request.method} {request.url.path}: {exc.code}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.message})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.code, "message": exc.message},
    )


allowed_origins = [origin for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(challenges.router)
app.include_router(admin.router)
app.include_router(player.router)
app.include_router(games.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Arena Escrow API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
