from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from kanbanflow import __version__, dependencies
from kanbanflow.config import settings
from kanbanflow.database import AsyncSessionLocal, close_db_engine, init_db_engine
from kanbanflow.engine.errors import EngineError
from kanbanflow.logging_config import get_logger, setup_logging
from kanbanflow.migration_check import ensure_migrations
from kanbanflow.routers import boards, cards, lists, tasks

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - connect/disconnect Redis and database."""
    # Initialize logging first
    setup_logging()

    if settings.redis_url:
        dependencies.redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await dependencies.redis_client.ping()
            logger.info(f"Connected to Redis at {settings.redis_url}")
        except Exception as e:
            logger.warning(f"Could not connect to Redis: {e}")
            logger.warning("API will continue without real-time events")
    else:
        logger.info("REDIS_URL not set, real-time events disabled")

    # Initialize async database engine
    try:
        await init_db_engine()
        logger.info("Database engine initialized")
    except Exception as e:
        logger.critical(f"Could not initialize database engine: {e}")
        raise

    # Verify database migrations are applied
    try:
        ensure_migrations()
    except Exception as e:
        logger.critical(f"Migration check failed: {e}")
        raise

    yield

    # Close async database engine
    try:
        await close_db_engine()
        logger.info("Database engine closed")
    except Exception as e:
        logger.error(f"Error closing database engine: {e}")

    if dependencies.redis_client:
        try:
            await dependencies.redis_client.close()
            logger.info("Disconnected from Redis")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
        dependencies.redis_client = None


app = FastAPI(
    title="Kanbanflow API",
    version=__version__,
    description="Kanban boards with task dependencies and workflow stages",
    lifespan=lifespan,
)

# CORS
# CORS_ORIGINS env var controls allowed origins.
#   "*"              → wildcard (allow any origin, credentials disabled)
#   "http://a,https://b" → explicit origin list (credentials enabled)
if settings.cors_origins in ("", "*"):
    _cors_origins = ["*"]
    _cors_credentials = False
else:
    _cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    _cors_credentials = True

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Map engine errors to their HTTP status codes."""
    logger.info(
        f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.detail}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are 400s with field-level messages."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"field": "", "message": "Invalid request"}
    return JSONResponse(
        status_code=400,
        content={
            "detail": first["message"],
            "type": "ValidationError",
            "field": first["field"],
            "errors": errors,
        },
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and return a generic 500."""
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "path": str(request.url.path)},
    )


app.include_router(boards.router, prefix="/v1/boards", tags=["boards"])
app.include_router(lists.router, prefix="/v1/boards", tags=["lists"])
app.include_router(cards.router, prefix="/v1", tags=["cards"])
app.include_router(tasks.router, prefix="/v1/cards", tags=["tasks"])


@app.get("/health")
async def health():
    """Database and Redis reachability."""
    status = {"status": "ok", "database": "ok", "redis": "disabled"}
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check database failure: {e}")
        status["status"] = "degraded"
        status["database"] = "unreachable"
    if dependencies.redis_client:
        try:
            await dependencies.redis_client.ping()
            status["redis"] = "ok"
        except Exception as e:
            logger.warning(f"Health check Redis failure: {e}")
            status["redis"] = "unreachable"
    return status
