import logging
import re
from typing import Mapping, Optional
from urllib.parse import urlsplit

from config import FALLBACK_FAVICON_URL
from models.site_info import FaviconResult
from services.fetcher import Fetcher
from services.urls import filter_relative_url

logger = logging.getLogger(__name__)

_ICON_TAG_RE = re.compile(
    r"""<link[^>]+rel=(['"])(?:icon|shortcut icon|alternate icon|apple-touch-icon)\1[^>]*>""",
    re.IGNORECASE,
)
_HREF_RE = re.compile(r"""href=(['"])(.*?)\1""", re.IGNORECASE)


def extract_favicon_url(html: str, base_url: str) -> Optional[str]:
    """Absolute URL of the first icon ``<link>`` in ``html``, if any."""
    if not html:
        return None
    tag = _ICON_TAG_RE.search(html)
    if tag:
        href = _HREF_RE.search(tag.group(0))
        if href:
            return filter_relative_url(href.group(2).strip(), base_url)
    return None


class FaviconResolver:
    """
    Picks a favicon for a page. Strategies run in order and the first one to
    produce a URL wins:

    1. a static rule matching the host (``static_rules`` maps regex -> URL)
    2. the icon declared in the page's HTML
    3. ``{origin}/favicon.ico``, if it serves a decodable image
    4. the third-party lookup service in ``fallback_url``
    """

    def __init__(
        self,
        fetcher: Fetcher,
        static_rules: Optional[Mapping[str, str]] = None,
        fallback_url: str = FALLBACK_FAVICON_URL,
    ):
        self.fetcher = fetcher
        self.static_rules = dict(static_rules or {})
        self.fallback_url = fallback_url

    def resolve(self, html: str, base_url: str, origin: str) -> FaviconResult:
        static_url = self._match_static_rule(origin)
        if static_url:
            return FaviconResult(url=static_url, source="static")

        icon_url = extract_favicon_url(html, base_url)
        if icon_url:
            # the declared icon is kept even when it cannot be downloaded
            icon = self.fetcher.fetch(icon_url, expect_image=True)
            if not icon.ok or not icon.data:
                self.fetcher.log("Declared favicon %s could not be fetched", icon_url)
            return FaviconResult(url=icon_url, source="html", data=icon.data)

        default_url = f"{origin}/favicon.ico"
        icon = self.fetcher.fetch(default_url, expect_image=True)
        if icon.ok and icon.data:
            return FaviconResult(url=default_url, source="default", data=icon.data)

        logger.debug("No favicon found for %s, using fallback service", origin)
        return FaviconResult(url=self.fallback_url.format(origin=origin), source="fallback")

    def _match_static_rule(self, origin: str) -> Optional[str]:
        host = urlsplit(origin).hostname or ""
        for pattern, url in self.static_rules.items():
            if re.search(pattern, host, re.IGNORECASE):
                return url
        return None
