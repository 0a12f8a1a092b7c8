import posixpath
import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_HOST_RE = re.compile(r"^[a-z0-9_.\-]+$|^[0-9a-f:.]+$")


def _host_port(parts: SplitResult) -> Optional[str]:
    """Return ``host[:port]`` for a split URL, or None when the host is unusable."""
    try:
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if not host:
        return None
    try:
        # internationalized names are checked in their punycode form
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return None
    if not _HOST_RE.match(ascii_host):
        return None
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}" if port is not None else host


def format_url(url: str) -> Optional[str]:
    """
    Reduce a user-supplied URL to its origin, ``scheme://host[:port]``.
    A missing scheme defaults to http. Returns None when no host can be found.
    """
    url = url.strip()
    parts = urlsplit(url)
    netloc = _host_port(parts) if parts.netloc else None
    if netloc is None:
        if not _SCHEME_RE.match(url):
            url = "http://" + url
        parts = urlsplit(url)
        netloc = _host_port(parts)
    if netloc is None:
        return None
    return f"{parts.scheme or 'http'}://{netloc}"


def filter_relative_url(url: str, base: str) -> str:
    """Resolve an href found on ``base`` to an absolute URL."""
    if "://" in url:
        return url

    parts = urlsplit(base)
    root = f"{parts.scheme}://{_host_port(parts) or parts.netloc}"

    if url.startswith("//"):
        return f"{parts.scheme}:{url}"
    if url.startswith("/"):
        return root + url

    base_dir = posixpath.dirname(parts.path) if parts.path else ""
    segments = []
    for segment in f"{base_dir}/{url}".split("/"):
        if segment == "..":
            # clamped at the root
            if segments:
                segments.pop()
        elif segment not in ("", "."):
            segments.append(segment)
    return root + "/" + "/".join(segments)


def ensure_scheme(url: str) -> str:
    """Prefix ``http://`` unless the URL already starts with http(s)://."""
    if not _SCHEME_RE.match(url):
        return "http://" + url.lstrip("/")
    return url


def extract_host(url: str) -> Optional[str]:
    """Lower-cased host of ``url``; scheme-less input is read as http."""
    try:
        host = urlsplit(ensure_scheme(url)).hostname
    except ValueError:
        return None
    return host or None
