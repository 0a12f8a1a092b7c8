import logging
import resource
import sys
import time
from typing import Mapping, Optional

from config import REQUEST_TIMEOUT, USER_AGENT
from models.site_info import Performance, SiteInfo, SiteInfoResponse
from services.favicon import FaviconResolver
from services.fetcher import Fetcher
from services.metadata import extract_metadata
from services.urls import ensure_scheme, format_url

logger = logging.getLogger(__name__)


class InvalidUrlError(ValueError):
    pass


def _memory_usage_mb() -> float:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    if sys.platform == "darwin":
        return peak / 1024 / 1024
    return peak / 1024


class SiteInfoFetcher:
    """
    Fetches a page and assembles its SiteInfo: title, description, keywords,
    canonical URL and favicon. Options are fixed for the object's lifetime.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
        fetch_meta: bool = True,
        debug: bool = False,
        static_rules: Optional[Mapping[str, str]] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.fetch_meta = fetch_meta
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(timeout=timeout, user_agent=user_agent, debug=debug)
        self.resolver = FaviconResolver(self.fetcher, static_rules=static_rules)

    def get_site_info(self, url: str) -> SiteInfoResponse:
        try:
            return self._get_site_info(ensure_scheme(url))
        finally:
            if self._owns_fetcher:
                self.fetcher.close()

    def _get_site_info(self, url: str) -> SiteInfoResponse:
        started = time.perf_counter()

        origin = format_url(url)
        if not origin:
            raise InvalidUrlError(f"Invalid URL: {url}")

        page = self.fetcher.fetch(url)
        if not page.ok:
            logger.debug("Fetching %s failed, retrying with %s", url, origin)
            page = self.fetcher.fetch(origin)
        html = page.text

        meta = {}
        if self.fetch_meta and html:
            meta = extract_metadata(html, url)

        favicon = self.resolver.resolve(html, url, origin)
        logger.info("Resolved favicon", extra={"host": origin, "source": favicon.source})

        return SiteInfoResponse(
            success=True,
            data=SiteInfo(
                **meta,
                favicon_url=favicon.url,
                host=origin,
                performance=Performance(
                    time_spent=f"{round(time.perf_counter() - started, 3)}s",
                    memory_usage=f"{round(_memory_usage_mb(), 2)}MB",
                ),
            ),
        )
