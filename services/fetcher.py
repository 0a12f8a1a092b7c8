import io
import logging
import time
from typing import Optional

import charset_normalizer
import requests
import urllib3
from PIL import Image
from urllib3.exceptions import InsecureRequestWarning

from config import MAX_CONTENT_LENGTH, MAX_REDIRECTS, REQUEST_TIMEOUT, USER_AGENT, VERIFY_SSL
from models.site_info import FAIL, OK, FetchResult

logger = logging.getLogger(__name__)

if not VERIFY_SSL:
    urllib3.disable_warnings(InsecureRequestWarning)


def is_valid_image(data: bytes) -> bool:
    """True when Pillow recognises ``data`` as an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception:
        return False
    return True


def detect_encoding(headers, data: bytes) -> Optional[str]:
    """Charset declared in Content-Type, else the one detected from ``data``."""
    if "charset" in headers.get("content-type", "").lower():
        return requests.utils.get_encoding_from_headers(headers)
    best = charset_normalizer.from_bytes(data).best()
    return best.encoding if best else None


class Fetcher:
    """
    Single-shot GET client. Redirects are followed up to ``max_redirects``;
    network errors never raise, they come back as a FAIL result with no data.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
        max_redirects: int = MAX_REDIRECTS,
        verify: bool = VERIFY_SSL,
        max_bytes: int = MAX_CONTENT_LENGTH,
        debug: bool = False,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.verify = verify
        self.debug = debug
        self.session = requests.Session()
        self.session.max_redirects = max_redirects
        self.session.headers.update({"User-Agent": user_agent})

    def fetch(self, url: str, expect_image: bool = False) -> FetchResult:
        """
        GET ``url`` within a total time budget of ``timeout`` seconds and at
        most ``max_bytes`` of body. Overruns count as failures.
        """
        deadline = time.monotonic() + self.timeout
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                allow_redirects=True,
                verify=self.verify,
                stream=True,
            )
        except requests.RequestException as exc:
            self.log("Request to %s failed: %s", url, exc)
            return FetchResult(status=FAIL, data=None, url=url)

        try:
            chunks = []
            size = 0
            for chunk in response.iter_content(8192):
                size += len(chunk)
                if size > self.max_bytes:
                    self.log("Response from %s exceeds %d bytes", url, self.max_bytes)
                    return FetchResult(status=FAIL, data=None, url=url)
                if time.monotonic() > deadline:
                    self.log("Request to %s exceeded %ss", url, self.timeout)
                    return FetchResult(status=FAIL, data=None, url=url)
                chunks.append(chunk)
        except requests.RequestException as exc:
            self.log("Reading %s failed: %s", url, exc)
            return FetchResult(status=FAIL, data=None, url=url)
        finally:
            response.close()

        status = OK if 200 <= response.status_code < 400 else FAIL
        data = b"".join(chunks) or None
        encoding = None

        if expect_image:
            if data and not is_valid_image(data):
                self.log("Invalid image data from: %s", url)
                data = None
        elif data:
            encoding = detect_encoding(response.headers, data)

        return FetchResult(status=status, data=data, url=response.url or url, encoding=encoding)

    def log(self, message: str, *args) -> None:
        # debug mode surfaces fetch diagnostics at the default log level
        logger.log(logging.INFO if self.debug else logging.DEBUG, message, *args)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
