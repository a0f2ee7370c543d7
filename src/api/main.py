import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api import deps
from src.api.routes import visits
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = deps.get_settings()

    # Rules and the data file must be usable before we accept traffic (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        engine = deps.init_engine(settings, rules)
    except Exception:
        logger.critical("Visit counter startup failed", exc_info=True)
        sys.exit(1)
    logger.info("Rules loaded from %s, stats at %s", settings.rules_path, settings.stats_path)

    yield

    if not engine.flush():
        logger.error("Unsaved visit stats could not be flushed on shutdown")


app = FastAPI(
    title="Visit Counter API",
    version="0.3.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(visits.router, prefix="/api/visits", tags=["Visits"])

# Any front-end may report visits
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal error"})


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "visits"}
