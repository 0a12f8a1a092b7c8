import html
import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from config import CACHE_DIR, CACHE_EXPIRE, HASH_KEY, HASH_KEY_FILE, LOG_LEVEL, MAX_URL_LENGTH
from models.site_info import SiteInfoResponse
from services.cache import CacheDirectoryError, HostCache, load_hash_key
from services.site_info import InvalidUrlError, SiteInfoFetcher
from services.urls import ensure_scheme

logging.basicConfig(level=LOG_LEVEL.upper())
logger = logging.getLogger("site-info")

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Error</title></head>
<body><h1>Unable to fetch site info</h1><p>{message}</p></body>
</html>
"""


@lru_cache
def get_cache() -> HostCache:
    return HostCache(load_hash_key(HASH_KEY_FILE, HASH_KEY), CACHE_DIR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        get_cache().ensure_dir()
    except CacheDirectoryError:
        logger.critical("Cache directory %s is not usable, refusing to start", CACHE_DIR)
        raise
    yield


app = FastAPI(title="Site Info Service", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidUrlError)
async def invalid_url_handler(request: Request, exc: InvalidUrlError):
    logger.warning(f"Rejected request for {request.url.path}: {exc}")
    return HTMLResponse(ERROR_PAGE.format(message=html.escape(str(exc))), status_code=400)


def _lookup(url: str, favicon_only: bool, refresh: bool, debug: bool, cache: HostCache) -> str:
    """Serialized SiteInfoResponse for ``url``, from the cache when fresh."""
    url = url.strip()
    if not url:
        raise InvalidUrlError("URL parameter is required")
    if len(url) > MAX_URL_LENGTH:
        raise InvalidUrlError(f"URL is longer than {MAX_URL_LENGTH} characters")
    url = ensure_scheme(url)

    if not refresh:
        cached = cache.get(url, "", CACHE_EXPIRE)
        if cached:
            logger.debug("Cache hit", extra={"url": url})
            return cached

    result = SiteInfoFetcher(fetch_meta=not favicon_only, debug=debug).get_site_info(url)
    body = result.model_dump_json()
    cache.set(url, body)
    return body


@app.get("/site-info")
def get_site_info(
    url: str = Query(..., description="The URL to fetch site info for"),
    favicon_only: bool = Query(False, description="Skip title/description/keywords extraction"),
    refresh: bool = Query(False, description="Ignore any cached result"),
    debug: bool = Query(False, description="Log fetch diagnostics"),
    cache: HostCache = Depends(get_cache),
):
    body = _lookup(url, favicon_only, refresh, debug, cache)
    return Response(content=body, media_type="application/json")


@app.get("/favicon")
def get_favicon(
    url: str = Query(..., description="The URL whose favicon to redirect to"),
    refresh: bool = Query(False, description="Ignore any cached result"),
    cache: HostCache = Depends(get_cache),
):
    body = _lookup(url, True, refresh, False, cache)
    favicon_url = SiteInfoResponse.model_validate_json(body).data.favicon_url
    return RedirectResponse(favicon_url, status_code=302)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/ready")
def ready():
    return {"status": "ready"}
