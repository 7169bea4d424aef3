from __future__ import annotations

import json

import pytest

from cloudgpu.errors import AuthError, RuntimeUnavailable, TransportError
from cloudgpu.runtime.api import HttpRuntimeApi, parse_runtime_status
from cloudgpu.runtime.models import ProxyEndpoint, RuntimeState, Variant


class _Tokens:
    def get_access_token(self) -> str:
        return "bearer-1"


class _Requester:
    def __init__(self, responses: list[tuple[int, object]]) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, str], bytes | None]] = []

    def __call__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> tuple[int, str, dict[str, str]]:
        self.calls.append((method, url, headers, body))
        status, payload = self.responses.pop(0)
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return status, text, {}


def _runtime(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": "rt-9",
        "label": "Colab GPU",
        "variant": "GPU",
        "state": "ready",
        "proxy": {"url": "https://proxy.example", "token": "tok"},
    }
    payload.update(overrides)
    return payload


def test_parse_runtime_status_normalizes_fields() -> None:
    status = parse_runtime_status(_runtime(variant="cpu", state="weird"))

    assert status is not None
    assert status.variant == Variant.DEFAULT
    assert status.state == RuntimeState.UNKNOWN
    assert status.proxy == ProxyEndpoint(url="https://proxy.example", token="tok")


def test_parse_runtime_status_rejects_entries_without_id() -> None:
    assert parse_runtime_status({"label": "x"}) is None
    assert parse_runtime_status(["id"]) is None


def test_list_runtimes_skips_malformed_entries() -> None:
    requester = _Requester([(200, {"runtimes": [_runtime(), {"bogus": True}]})])
    api = HttpRuntimeApi("https://api.example/", _Tokens(), requester=requester)

    runtimes = api.list_runtimes()

    assert [item.runtime_id for item in runtimes] == ["rt-9"]
    method, url, headers, _ = requester.calls[0]
    assert (method, url) == ("GET", "https://api.example/v1/runtimes")
    assert headers["Authorization"] == "Bearer bearer-1"


def test_create_runtime_posts_variant() -> None:
    requester = _Requester([(201, _runtime(state="queued", proxy=None))])
    api = HttpRuntimeApi("https://api.example", _Tokens(), requester=requester)

    status = api.create_runtime(Variant.TPU)

    assert status.state == RuntimeState.QUEUED
    assert status.proxy is None
    method, _, headers, body = requester.calls[0]
    assert method == "POST"
    assert headers["Content-Type"] == "application/json"
    assert json.loads(body or b"") == {"variant": "TPU"}


def test_get_runtime_quotes_identifier() -> None:
    requester = _Requester([(200, _runtime())])
    api = HttpRuntimeApi("https://api.example", _Tokens(), requester=requester)

    api.get_runtime("a/b")

    assert requester.calls[0][1] == "https://api.example/v1/runtimes/a%2Fb"


@pytest.mark.parametrize(
    ("status", "error"),
    [
        (401, AuthError),
        (403, AuthError),
        (429, RuntimeUnavailable),
        (500, TransportError),
    ],
)
def test_error_statuses_map_to_domain_errors(status: int, error: type[Exception]) -> None:
    api = HttpRuntimeApi("https://api.example", _Tokens(), requester=_Requester([(status, {"message": "nope"})]))

    with pytest.raises(error):
        api.list_runtimes()


def test_non_object_payload_is_transport_error() -> None:
    api = HttpRuntimeApi("https://api.example", _Tokens(), requester=_Requester([(200, "[1, 2]")]))

    with pytest.raises(TransportError):
        api.get_runtime("rt-9")
