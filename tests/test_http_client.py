"""Tests for the shared HTTP helpers and logging utilities."""

import logging
from unittest.mock import MagicMock, patch

import requests

from common.http_client import get_json, robust_get
from common.logging_utils import extra_context, format_names, safe_url


def _response(status, text="{}"):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = {"X-Test": "1"}
    resp.text = text
    return resp


class TestRobustGet:
    @patch("common.http_client.time.sleep")
    @patch("common.http_client.requests.get")
    def test_client_errors_not_retried(self, mock_get, mock_sleep):
        mock_get.return_value = _response(404, "missing")
        status, headers, text = robust_get("https://example.org/x", retries=3)
        assert (status, text) == (404, "missing")
        assert headers == {"X-Test": "1"}
        assert mock_get.call_count == 1
        mock_sleep.assert_not_called()

    @patch("common.http_client.time.sleep")
    @patch("common.http_client.requests.get")
    def test_timeouts_retried_then_reported(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.Timeout("slow")
        status, headers, text = robust_get("https://example.org/x", retries=3, base_delay=0.1, timeout=2)
        assert status == 0
        assert headers == {}
        assert "after 3 attempts" in text
        assert mock_get.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("common.http_client.requests.get")
    def test_timeout_passed_through(self, mock_get):
        mock_get.return_value = _response(200)
        robust_get("https://example.org/x", timeout=7)
        assert mock_get.call_args.kwargs["timeout"] == 7


class TestGetJson:
    @patch("common.http_client.requests.get")
    def test_parses_200(self, mock_get):
        mock_get.return_value = _response(200, '{"Version": "1.0"}')
        assert get_json("https://example.org/x")[2] == {"Version": "1.0"}

    @patch("common.http_client.requests.get")
    def test_non_200_yields_none(self, mock_get):
        mock_get.return_value = _response(404, '{"error": "not_found"}')
        assert get_json("https://example.org/x") == (404, {"X-Test": "1"}, None)


class TestLoggingUtils:
    def test_safe_url_redacts(self):
        url = safe_url("https://user:pw@example.org/pkg?token=abc&page=2")
        assert "pw" not in url
        assert "abc" not in url
        assert "page=2" in url

    def test_extra_context_drops_none(self):
        assert extra_context(event="x", target=None) == {"ctx": {"event": "x"}}

    def test_format_names(self):
        assert format_names({"b", "a"}) == "a, b"
        assert format_names([]) == "(none)"

    def test_context_fields_on_debug(self, caplog):
        logger = logging.getLogger("renvcheck.test")
        with caplog.at_level(logging.DEBUG, logger="renvcheck.test"):
            logger.debug("event", extra=extra_context(component="test"))
        assert caplog.records[0].ctx == {"component": "test"}
