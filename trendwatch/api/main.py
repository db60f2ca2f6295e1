"""FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from trendwatch import __version__
from trendwatch.api.deps import ApiKeyError, close_deps, init_deps
from trendwatch.api.routers import debug, health, trending
from trendwatch.crawler.errors import CrawlerError
from trendwatch.services.trending_service import InvalidRegionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_deps()
    yield
    await close_deps()


app = FastAPI(
    title="trendwatch",
    description="Ranked TikTok trending videos scraped through a headless browser",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(trending.router)
app.include_router(debug.router)


@app.get("/")
async def index() -> dict:
    """List available routes."""
    return {
        "ok": True,
        "routes": ["/trending?limit=50", "/debug", "/health"],
    }


# ──────────────────────────────────────────────
# Error bodies
# ──────────────────────────────────────────────

@app.exception_handler(CrawlerError)
async def crawler_error_handler(request: Request, exc: CrawlerError) -> JSONResponse:
    logger.error("%s failed: [%s] %s", request.url.path, exc.kind, exc)
    return JSONResponse(status_code=500, content={"error": exc.kind, "message": str(exc)})


@app.exception_handler(InvalidRegionError)
async def invalid_region_handler(request: Request, exc: InvalidRegionError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "invalid_region", "message": str(exc)})


@app.exception_handler(ApiKeyError)
async def api_key_handler(request: Request, exc: ApiKeyError) -> JSONResponse:
    logger.warning("Rejected %s from %s: %s", request.url.path, request.client.host if request.client else "?", exc)
    return JSONResponse(status_code=401, content={"error": "unauthorized", "message": str(exc)})
