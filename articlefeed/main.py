import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from articlefeed.cache import cache
from articlefeed.config import settings
from articlefeed.errors import setup_exception_handlers
from articlefeed.middleware import TimingMiddleware
from articlefeed.routers import articles, profiles, users

VERSION = "1.0.0"

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await cache.connect()
    logger.info("Article feed API %s up (env=%s)", VERSION, settings.APP_ENV)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Article Feed API",
    description="Social publishing API with cursor-paginated, viewer-annotated article feeds",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(TimingMiddleware)
# Wildcard origins never combine with credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Query-Count", "X-Response-Time-Ms"],
)

setup_exception_handlers(app)

for router in (articles.router, users.router, profiles.router):
    app.include_router(router)


@app.get("/health")
async def health():
    """Liveness check; Redis being down still reports healthy."""
    return {"status": "healthy", "version": VERSION, "cache": cache.stats}
