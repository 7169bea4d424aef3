"""Minimal JSON-over-HTTP transport shared by the API client and terminal channel."""

from __future__ import annotations

import json
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from cloudgpu.errors import TransportError

HttpResponse = tuple[int, str, dict[str, str]]

DEFAULT_TIMEOUT_SECONDS = 30


class HttpRequester(Protocol):
    def __call__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> HttpResponse: ...


def _validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"} or not parsed.netloc:
        raise TransportError(
            f"Invalid endpoint url: {url}",
            hint="Only http(s) endpoints are supported.",
        )


def default_requester(
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
) -> HttpResponse:
    _validate_url(url)
    request = Request(url, data=body, headers=headers, method=method)
    try:
        with urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            payload = response.read().decode("utf-8")
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            return status, payload, response_headers
    except HTTPError as exc:
        payload = ""
        if exc.fp is not None:
            payload = exc.read().decode("utf-8", errors="replace")
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return exc.code, payload, response_headers
    except URLError as exc:
        raise TransportError(
            f"Could not reach {urlparse(url).netloc}",
            hint=str(exc.reason) or "Check your network connection.",
        ) from exc
    except OSError as exc:
        raise TransportError(
            f"Request to {urlparse(url).netloc} failed",
            hint=str(exc) or "Check your network connection.",
        ) from exc


def is_success(status: int) -> bool:
    return 200 <= status < 300


def parse_json_object(payload: str) -> dict[str, object] | None:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, dict):
        return parsed
    return None


def extract_message(payload: str) -> str:
    parsed = parse_json_object(payload)
    if parsed is None:
        return ""
    for key in ("message", "error", "detail"):
        value = parsed.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, dict):
            nested = value.get("message")
            if isinstance(nested, str):
                return nested
    return ""
