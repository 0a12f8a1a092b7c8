import logging
from unittest.mock import MagicMock, patch

import requests

from models.site_info import FAIL, OK
from services.favicon import FaviconResolver, extract_favicon_url
from services.fetcher import Fetcher, is_valid_image


def mock_response(status_code=200, content=b"", url="http://a.com/", headers=None, chunks=None):
    response = MagicMock()
    response.status_code = status_code
    response.url = url
    response.headers = headers or {}
    if chunks is None:
        chunks = [content] if content else []
    response.iter_content.return_value = iter(chunks)
    return response


# --- icon tag extraction ---

def test_extract_favicon_url_relative():
    html = '<link rel="icon" href="/f.ico">'
    assert extract_favicon_url(html, "http://a.com") == "http://a.com/f.ico"


def test_extract_favicon_url_variants():
    base = "http://a.com/dir/page"
    assert extract_favicon_url("<link rel='shortcut icon' href='fav.png'>", base) == "http://a.com/dir/fav.png"
    assert extract_favicon_url('<LINK REL="Apple-Touch-Icon" HREF="//cdn.com/t.png">', base) == "http://cdn.com/t.png"
    assert extract_favicon_url('<link rel="alternate icon" href=" /alt.ico ">', base) == "http://a.com/alt.ico"


def test_extract_favicon_url_first_tag_only():
    html = '<link rel="icon" href="/first.ico"><link rel="icon" href="/second.ico">'
    assert extract_favicon_url(html, "http://a.com") == "http://a.com/first.ico"


def test_extract_favicon_url_ignores_other_rels():
    assert extract_favicon_url('<link rel="stylesheet" href="/s.css">', "http://a.com") is None
    assert extract_favicon_url('<link rel="mask-icon" href="/m.svg">', "http://a.com") is None
    assert extract_favicon_url("", "http://a.com") is None


# --- resolver chain ---

def test_resolver_uses_html_icon(make_fetcher, png_bytes):
    fetcher = make_fetcher({"http://a.com/f.ico": png_bytes})
    result = FaviconResolver(fetcher).resolve('<link rel="icon" href="/f.ico">', "http://a.com", "http://a.com")
    assert result.url == "http://a.com/f.ico"
    assert result.source == "html"
    assert result.data == png_bytes


def test_resolver_keeps_html_icon_when_download_fails(make_fetcher, png_bytes):
    fetcher = make_fetcher({"http://a.com/favicon.ico": png_bytes})
    result = FaviconResolver(fetcher).resolve('<link rel="icon" href="/broken.ico">', "http://a.com", "http://a.com")
    assert result.url == "http://a.com/broken.ico"
    assert result.data is None
    fetcher.fetch.assert_called_once_with("http://a.com/broken.ico", expect_image=True)


def test_resolver_probes_default_path(make_fetcher, png_bytes):
    fetcher = make_fetcher({"http://a.com/favicon.ico": png_bytes})
    result = FaviconResolver(fetcher).resolve("<html></html>", "http://a.com", "http://a.com")
    assert result.url == "http://a.com/favicon.ico"
    assert result.source == "default"


def test_resolver_falls_back_to_service(make_fetcher):
    result = FaviconResolver(make_fetcher({})).resolve("<html></html>", "http://a.com", "http://a.com")
    assert result.source == "fallback"
    assert "a.com" in result.url
    assert result.url.startswith("https://")
    assert result.data is None


def test_resolver_static_rule_wins(make_fetcher):
    fetcher = make_fetcher({})
    resolver = FaviconResolver(fetcher, static_rules={r"(^|\.)a\.com$": "/static/a.png"})
    result = resolver.resolve('<link rel="icon" href="/f.ico">', "http://www.a.com", "http://www.a.com")
    assert result.url == "/static/a.png"
    assert result.source == "static"
    fetcher.fetch.assert_not_called()


# --- fetcher ---

def test_is_valid_image(png_bytes):
    assert is_valid_image(png_bytes)
    assert not is_valid_image(b"<html>not an image</html>")


def test_fetch_ok_with_redirect_url():
    response = mock_response(301, b"<html></html>", url="https://a.com/home")
    with patch("services.fetcher.requests.Session.get", return_value=response) as get:
        result = Fetcher(timeout=7, verify=False).fetch("http://a.com")
    assert result.status == OK
    assert result.data == b"<html></html>"
    assert result.url == "https://a.com/home"
    get.assert_called_once_with(
        "http://a.com", timeout=7, allow_redirects=True, verify=False, stream=True
    )
    response.close.assert_called_once()


def test_fetch_error_status_is_fail():
    with patch("services.fetcher.requests.Session.get", return_value=mock_response(404, b"missing")):
        result = Fetcher().fetch("http://a.com/x")
    assert result.status == FAIL
    assert not result.ok


def test_fetch_network_error_is_fail():
    with patch("services.fetcher.requests.Session.get", side_effect=requests.ConnectionError("refused")):
        result = Fetcher().fetch("http://a.com")
    assert result.status == FAIL
    assert result.data is None
    assert result.url == "http://a.com"


def test_fetch_too_many_redirects_is_fail():
    with patch("services.fetcher.requests.Session.get", side_effect=requests.TooManyRedirects("loop")):
        assert Fetcher().fetch("http://a.com").status == FAIL


def test_fetch_discards_invalid_image():
    with patch("services.fetcher.requests.Session.get", return_value=mock_response(200, b"<html></html>")):
        result = Fetcher().fetch("http://a.com/favicon.ico", expect_image=True)
    assert result.status == OK
    assert result.data is None


def test_fetch_keeps_valid_image(png_bytes):
    with patch("services.fetcher.requests.Session.get", return_value=mock_response(200, png_bytes)):
        result = Fetcher().fetch("http://a.com/favicon.ico", expect_image=True)
    assert result.data == png_bytes


def test_fetcher_session_settings():
    fetcher = Fetcher(user_agent="TestAgent/1.0", max_redirects=3)
    assert fetcher.session.max_redirects == 3
    assert fetcher.session.headers["User-Agent"] == "TestAgent/1.0"


def test_fetch_decodes_declared_charset():
    body = "<title>中文标题</title>".encode("gbk")
    response = mock_response(200, body, headers={"content-type": "text/html; charset=gbk"})
    with patch("services.fetcher.requests.Session.get", return_value=response):
        result = Fetcher().fetch("http://a.com")
    assert result.encoding == "gbk"
    assert result.text == "<title>中文标题</title>"


def test_fetch_utf8_page_without_charset():
    body = "<title>Café</title>".encode("utf-8")
    with patch("services.fetcher.requests.Session.get", return_value=mock_response(200, body)):
        result = Fetcher().fetch("http://a.com")
    assert "Café" in result.text


def test_fetch_fails_past_total_timeout():
    response = mock_response(200, chunks=[b"a" * 10, b"b" * 10, b"c" * 10])
    clock = iter([0.0, 1.0, 4.0])
    with patch("services.fetcher.requests.Session.get", return_value=response), \
            patch("services.fetcher.time.monotonic", side_effect=lambda: next(clock, 6.0)):
        result = Fetcher(timeout=5).fetch("http://a.com")
    assert result.status == FAIL
    assert result.data is None
    response.close.assert_called_once()


def test_fetch_fails_when_body_too_large():
    response = mock_response(200, chunks=[b"x" * 8, b"x" * 8])
    with patch("services.fetcher.requests.Session.get", return_value=response):
        result = Fetcher(max_bytes=10).fetch("http://a.com/favicon.ico", expect_image=True)
    assert result.status == FAIL
    assert result.data is None


def test_fetch_read_error_is_fail():
    response = mock_response(200)
    response.iter_content.side_effect = requests.ConnectionError("reset")
    with patch("services.fetcher.requests.Session.get", return_value=response):
        assert Fetcher().fetch("http://a.com").status == FAIL


def test_fetcher_context_manager_closes_session():
    with patch("services.fetcher.requests.Session.close") as close:
        with Fetcher() as fetcher:
            assert isinstance(fetcher, Fetcher)
        close.assert_called_once()


def test_debug_mode_logs_at_info(caplog):
    caplog.set_level(logging.DEBUG, logger="services.fetcher")
    with patch("services.fetcher.requests.Session.get", side_effect=requests.ConnectionError("refused")):
        Fetcher(debug=True).fetch("http://a.com")
        Fetcher().fetch("http://b.com")
    levels = {
        record.getMessage().split()[2]: record.levelno
        for record in caplog.records
        if record.name == "services.fetcher"
    }
    assert levels["http://a.com"] == logging.INFO
    assert levels["http://b.com"] == logging.DEBUG
