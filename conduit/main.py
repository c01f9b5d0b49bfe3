import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit.cache import cache
from conduit.config import settings
from conduit.exceptions import register_exception_handlers
from conduit.logging_config import configure_logging
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, auth, comments, tags, users

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # The tag list cache is optional; CacheManager degrades to no-ops.
    await cache.connect()
    logger.info("Conduit API %s started (env=%s)", VERSION, settings.APP_ENV)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Conduit API",
    description="Social blogging backend: articles, comments, favorites and follows",
    version=VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION, "cache": cache.stats}
