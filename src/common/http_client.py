"""Shared HTTP helpers used by the registry client.

Encapsulates request/timeout error handling, bounded retries with exponential
backoff and DEBUG traces so callers only deal with status codes and bodies.
Unlike a CLI-level helper, nothing here exits the process: failures surface
as a zero status code and an error text.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def _backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry number ``attempt + 1`` (0-based attempt)."""
    return base_delay * (2 ** attempt)


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = Constants.REQUEST_TIMEOUT,
    retries: int = Constants.HTTP_RETRY_MAX,
    base_delay: float = Constants.HTTP_RETRY_BASE_DELAY_SEC,
    **kwargs: Any,
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout and retries, with DEBUG traces.

    Transport errors, timeouts and 5xx responses are retried up to
    ``retries`` attempts in total, sleeping ``base_delay * 2 ** attempt``
    between attempts. Other responses are returned immediately.

    Returns:
        Tuple of (status_code, headers_dict, text). On exhausted retries the
        status code is 0 and text describes the last failure.
    """
    safe_target = safe_url(url)
    attempts = max(1, int(retries))
    last_exception: Optional[str] = None

    for attempt in range(attempts):
        if attempt:
            time.sleep(_backoff_delay(attempt - 1, base_delay))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1,
                        ),
                    )
                response = requests.get(url, timeout=timeout, headers=headers, **kwargs)
            except requests.Timeout:
                last_exception = f"timed out after {timeout} seconds"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_exception = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                continue

        if response.status_code >= 500:
            last_exception = f"server error {response.status_code}"
            logger.debug("Retrying %s after HTTP %s", safe_target, response.status_code)
            continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success" if response.status_code < 400 else "client_error",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                ),
            )
        return response.status_code, dict(response.headers), response.text

    return 0, {}, f"Request failed after {attempts} attempts: {last_exception}"


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any,
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse a JSON response.

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none). The parsed
        value is None for non-200 responses and undecodable bodies.
    """
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)

    if status_code == 200 and text:
        try:
            return status_code, response_headers, json.loads(text)
        except json.JSONDecodeError:
            if is_debug_enabled(logger):
                logger.debug(
                    "JSON decode error",
                    extra=extra_context(
                        event="parse",
                        component="http_client",
                        action="get_json",
                        outcome="json_decode_error",
                        status_code=status_code,
                        target=safe_url(url),
                    ),
                )
            return status_code, response_headers, None

    return status_code, response_headers, None
