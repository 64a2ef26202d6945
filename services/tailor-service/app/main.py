import logging

from fastapi import FastAPI

from .cache import search_cache
from .config import LOG_LEVEL
from .db import database
from .logging_config import configure_logging
from .routes import router

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tailor Service")

app.include_router(router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "tailor-service",
        "database_open": database.is_open,
        "search_cache_enabled": search_cache.enabled,
    }


@app.on_event("startup")
async def startup():
    database.open()


@app.on_event("shutdown")
async def shutdown():
    try:
        await search_cache.close()
    except Exception as e:
        logger.warning("search cache close failed: %s", e)
    await database.close()
