import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from models.site_info import FAIL, OK, FetchResult
from services.fetcher import Fetcher


def make_png(size=(16, 16)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, "red").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def make_fetcher():
    """Build a Fetcher stand-in that serves ``pages`` (url -> bytes) and fails for everything else."""

    def _make(pages: dict) -> MagicMock:
        fetcher = MagicMock(spec=Fetcher)

        def fetch(url, expect_image=False):
            if url in pages:
                return FetchResult(status=OK, data=pages[url], url=url)
            return FetchResult(status=FAIL, data=None, url=url)

        fetcher.fetch.side_effect = fetch
        return fetcher

    return _make
