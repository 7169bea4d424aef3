"""Runtime control-plane client (list, create, and poll runtimes)."""

from __future__ import annotations

import json
import logging as py_logging
from typing import Protocol
from urllib.parse import quote

from cloudgpu.auth import TokenProvider
from cloudgpu.errors import AuthError, RuntimeUnavailable, TransportError
from cloudgpu.http import HttpRequester, default_requester, extract_message, is_success, parse_json_object
from cloudgpu.runtime.models import ProxyEndpoint, RuntimeState, RuntimeStatus, Variant

logger = py_logging.getLogger(__name__)

CLIENT_AGENT = "cloudgpu"


class RuntimeApi(Protocol):
    def list_runtimes(self) -> list[RuntimeStatus]: ...

    def create_runtime(self, variant: Variant) -> RuntimeStatus: ...

    def get_runtime(self, runtime_id: str) -> RuntimeStatus: ...


def parse_runtime_status(payload: object) -> RuntimeStatus | None:
    if not isinstance(payload, dict):
        return None
    runtime_id = payload.get("id")
    if not isinstance(runtime_id, str) or not runtime_id.strip():
        return None
    label = payload.get("label")
    try:
        variant = Variant.from_name(str(payload.get("variant", Variant.DEFAULT.value)))
    except ValueError:
        variant = Variant.DEFAULT

    proxy: ProxyEndpoint | None = None
    raw_proxy = payload.get("proxy")
    if isinstance(raw_proxy, dict):
        url = raw_proxy.get("url")
        token = raw_proxy.get("token")
        if isinstance(url, str) and url.strip():
            proxy = ProxyEndpoint(url=url.strip(), token=token if isinstance(token, str) else "")

    message = payload.get("message")
    return RuntimeStatus(
        runtime_id=runtime_id.strip(),
        label=label if isinstance(label, str) and label else runtime_id.strip(),
        variant=variant,
        state=RuntimeState.parse(payload.get("state")),
        proxy=proxy,
        message=message if isinstance(message, str) else "",
    )


class HttpRuntimeApi:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        requester: HttpRequester | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._request = requester or default_requester

    def list_runtimes(self) -> list[RuntimeStatus]:
        payload = self._call("GET", "/v1/runtimes")
        entries = payload.get("runtimes", [])
        if not isinstance(entries, list):
            logger.warning("Runtime list payload had no runtimes array")
            return []
        runtimes: list[RuntimeStatus] = []
        for entry in entries:
            status = parse_runtime_status(entry)
            if status is None:
                logger.debug("Skipping malformed runtime entry: %r", entry)
                continue
            runtimes.append(status)
        return runtimes

    def create_runtime(self, variant: Variant) -> RuntimeStatus:
        payload = self._call("POST", "/v1/runtimes", body={"variant": variant.value})
        return self._require_status(payload)

    def get_runtime(self, runtime_id: str) -> RuntimeStatus:
        payload = self._call("GET", f"/v1/runtimes/{quote(runtime_id, safe='')}")
        return self._require_status(payload)

    def _headers(self) -> dict[str, str]:
        token = self._token_provider.get_access_token()
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "User-Agent": CLIENT_AGENT,
        }

    def _call(self, method: str, path: str, *, body: dict[str, object] | None = None) -> dict[str, object]:
        headers = self._headers()
        data: bytes | None = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body).encode("utf-8")
        url = f"{self.base_url}{path}"
        logger.debug("Runtime API request method=%s url=%s", method, url)
        status, payload, _ = self._request(method, url, headers, data)

        if is_success(status):
            parsed = parse_json_object(payload)
            if parsed is None:
                logger.error("Runtime API payload was not a JSON object url=%s", url)
                raise TransportError(
                    "Runtime API returned an unexpected payload",
                    hint="Retry later or check the API url.",
                )
            return parsed

        detail = extract_message(payload)
        logger.debug("Runtime API failure status=%s detail=%s", status, detail)
        if status in {401, 403}:
            raise AuthError(
                detail or "Access token was rejected",
                hint="Refresh the access token and retry.",
            )
        if status == 429:
            raise RuntimeUnavailable(
                detail or "Runtime quota exceeded",
                hint="Wait for quota to reset or release an existing runtime.",
            )
        raise TransportError(
            f"Runtime API request failed ({status})",
            hint=detail or "Retry later.",
        )

    @staticmethod
    def _require_status(payload: dict[str, object]) -> RuntimeStatus:
        status = parse_runtime_status(payload)
        if status is None:
            raise TransportError(
                "Runtime API response did not describe a runtime",
                hint="Retry later or check the API url.",
            )
        return status
