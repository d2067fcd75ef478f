"""
FastAPI Application.

Main entry point for the API server.
"""

import logging
import sys
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load .env file at startup
load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from loguru import logger  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402

from config.settings import get_settings  # noqa: E402


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


# Configure loguru format with default module
logger.configure(extra={"module": "Server"})
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[module]: <14}</cyan> | <level>{message}</level>",
    level=get_settings().log_level.upper(),
)

# Intercept uvicorn logs
for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
    uv_logger = logging.getLogger(name)
    uv_logger.handlers = [InterceptHandler()]
    uv_logger.propagate = False

log = logger.bind(module="App")

from src.api.routes import health_router, matches_router, preferences_router  # noqa: E402
from src.connections.postgres import close_postgres, get_postgres  # noqa: E402
from src.connections.redis import close_redis, get_redis  # noqa: E402
from src.llm import GroqClient, RateLimiter  # noqa: E402
from src.matching import ExplanationGenerator, MatchOrchestrator, ResultCache  # noqa: E402
from src.middleware import setup_middleware  # noqa: E402
from src.modules import ListingRepository, PreferenceRepository  # noqa: E402


async def connect_cache_store():
    """
    Connect to Redis for result and explanation caching.

    Returns:
        Redis client, or None if Redis is unavailable (caching disabled)
    """
    try:
        connection = await get_redis()
        return connection.client
    except Exception as e:
        log.warning(f"Redis unavailable, caching disabled: {e}")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings = get_settings()

    # Catalog and preferences are required
    postgres = await get_postgres()
    redis_client = await connect_cache_store()

    rate_limiter = RateLimiter(
        max_concurrent=settings.groq.max_concurrent,
        cooldown=settings.groq.rate_limit_cooldown,
    )
    groq_client = GroqClient(settings.groq)
    if not groq_client.enabled:
        log.warning("GROQ_API_KEY not set, explanations use fallback text")

    explainer = ExplanationGenerator(
        client=groq_client,
        rate_limiter=rate_limiter,
        redis_client=redis_client,
        threshold=settings.matching.explanation_threshold,
        timeout=settings.groq.timeout,
        cache_ttl=settings.groq.cache_ttl,
        request_delay=settings.groq.request_delay,
    )
    cache = ResultCache(
        redis_client,
        ttl=settings.matching.cache_ttl,
        default_limit=settings.matching.default_limit,
        sweep_pages=settings.matching.sweep_pages,
        sweep_limits=settings.matching.sweep_limits,
    )

    app.state.explainer = explainer
    app.state.orchestrator = MatchOrchestrator(
        preferences=PreferenceRepository(postgres.pool),
        listings=ListingRepository(postgres.pool),
        cache=cache,
        explainer=explainer,
        settings=settings.matching,
    )
    log.info("Server started")

    yield

    # Shutdown
    await groq_client.close()
    await close_redis()
    await close_postgres()
    log.info("Server stopped")


app = FastAPI(
    title="Apartment Match API",
    description="Preference-to-listing matching with cached, explained results",
    version="0.1.0",
    lifespan=lifespan,
)

# Setup middleware
setup_middleware(app)

# Register routes
app.include_router(health_router)
app.include_router(matches_router)
app.include_router(preferences_router)


# Custom exception handlers for unified error response format
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to unified error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert validation errors to unified error format."""
    errors = exc.errors()
    if errors:
        # Get first error message
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{field}: {msg}" if field else msg
    else:
        message = "Validation error"

    return JSONResponse(
        status_code=422,
        content={"success": False, "message": message},
    )
