import re

# Plain pattern matching over the page text; attribute order and quoting
# must match these exactly.
_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(r'<meta\s+name="description"\s+content="(.*?)"', re.IGNORECASE)
_KEYWORDS_RE = re.compile(r'<meta\s+name="keywords"\s+content="(.*?)"', re.IGNORECASE)
_CANONICAL_RE = re.compile(r'<link\s+rel="canonical"\s+href="(.*?)"', re.IGNORECASE)


def _first(pattern: re.Pattern, html: str, default: str) -> str:
    match = pattern.search(html)
    return match.group(1) if match else default


def extract_metadata(html: str, base_url: str) -> dict:
    """
    Pull title, description, keywords and canonical URL out of raw HTML.
    Missing fields are empty strings, except canonical which falls back to
    ``base_url``.
    """
    html = html.replace("\n", "").replace("\r", "")
    return {
        "title": _first(_TITLE_RE, html, ""),
        "description": _first(_DESCRIPTION_RE, html, ""),
        "keywords": _first(_KEYWORDS_RE, html, ""),
        "canonical": _first(_CANONICAL_RE, html, base_url),
    }
