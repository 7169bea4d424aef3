"""Terminal channel: create a remote terminal, then stream frames over a websocket."""

from __future__ import annotations

import json
import logging as py_logging
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Protocol
from urllib.parse import urlencode, urljoin, urlparse, urlunparse

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake, InvalidURI
from websockets.sync.client import connect as websocket_connect

from cloudgpu.errors import ProtocolError, TransportError
from cloudgpu.http import HttpRequester, default_requester, extract_message, is_success, parse_json_object
from cloudgpu.runtime.models import AssignedRuntime
from cloudgpu.terminal.frames import TerminalFrame, decode_frame, encode_frame

logger = py_logging.getLogger(__name__)

PROXY_TOKEN_HEADER = "X-Colab-Runtime-Proxy-Token"
CLIENT_AGENT_HEADER = "X-Colab-Client-Agent"
CLIENT_AGENT = "cloudgpu"


class ChannelState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"


class WebSocketLike(Protocol):
    def send(self, message: str) -> None: ...

    def recv(self) -> str | bytes: ...

    def close(self) -> None: ...


WebSocketConnector = Callable[[str, dict[str, str], str], WebSocketLike]


def _default_connector(url: str, headers: dict[str, str], origin: str) -> WebSocketLike:
    return websocket_connect(url, additional_headers=headers, origin=origin)


def _base_url(proxy_url: str) -> str:
    return proxy_url if proxy_url.endswith("/") else f"{proxy_url}/"


def proxy_origin(proxy_url: str) -> str:
    parsed = urlparse(proxy_url)
    return f"{parsed.scheme}://{parsed.netloc}"


def terminal_api_url(proxy_url: str) -> str:
    return urljoin(_base_url(proxy_url), "api/terminals")


def terminal_websocket_url(proxy_url: str, name: str) -> str:
    http_url = urljoin(_base_url(proxy_url), f"terminals/websocket/{name}")
    parsed = urlparse(http_url)
    scheme = "wss" if parsed.scheme == "https" else "ws"
    return urlunparse(parsed._replace(scheme=scheme, query=urlencode({"authuser": "0"})))


class TerminalChannel:
    """One terminal resource and its socket; events are consumed by a single reader."""

    def __init__(
        self,
        runtime: AssignedRuntime,
        *,
        requester: HttpRequester | None = None,
        connector: WebSocketConnector | None = None,
    ) -> None:
        self.runtime = runtime
        self._request = requester or default_requester
        self._connect = connector or _default_connector
        self._socket: WebSocketLike | None = None
        self.state = ChannelState.CONNECTING
        self.terminal_name = ""

    def open(self) -> TerminalChannel:
        if self.state != ChannelState.CONNECTING:
            raise TransportError(f"Terminal channel cannot be reopened (state={self.state.value})")
        try:
            self.terminal_name = self._create_terminal()
            self._socket = self._open_socket(self.terminal_name)
        except TransportError:
            self.state = ChannelState.ERRORED
            raise
        self.state = ChannelState.OPEN
        logger.debug("Terminal channel open runtime=%s terminal=%s", self.runtime.label, self.terminal_name)
        return self

    def send(self, frame: TerminalFrame) -> None:
        socket = self._require_open()
        try:
            socket.send(encode_frame(frame))
        except ConnectionClosed as exc:
            self._mark_closed(exc)
            raise TransportError("Terminal connection closed before input was delivered") from exc
        except OSError as exc:
            self.state = ChannelState.ERRORED
            raise TransportError("Failed to send terminal input", hint=str(exc)) from exc

    def frames(self) -> Iterator[TerminalFrame]:
        socket = self._require_open()
        while self.state == ChannelState.OPEN:
            try:
                message = socket.recv()
            except ConnectionClosed as exc:
                self._mark_closed(exc)
                return
            except OSError as exc:
                self.state = ChannelState.ERRORED
                logger.error("Terminal socket error terminal=%s: %s", self.terminal_name, exc)
                raise TransportError("Terminal connection failed", hint=str(exc)) from exc
            try:
                frame = decode_frame(message)
            except ProtocolError as exc:
                logger.warning("Skipping malformed terminal frame: %s", exc.message)
                continue
            if frame is None:
                logger.debug("Ignoring unknown terminal frame: %.80r", message)
                continue
            yield frame

    def close(self) -> None:
        if self.state == ChannelState.OPEN:
            self.state = ChannelState.CLOSED
        socket, self._socket = self._socket, None
        if socket is None:
            return
        try:
            socket.close()
        except OSError as exc:
            logger.debug("Ignoring socket close failure: %s", exc)
        logger.debug("Terminal channel closed locally terminal=%s", self.terminal_name)

    @property
    def is_open(self) -> bool:
        return self.state == ChannelState.OPEN

    def _headers(self) -> dict[str, str]:
        return {
            PROXY_TOKEN_HEADER: self.runtime.proxy.token,
            CLIENT_AGENT_HEADER: CLIENT_AGENT,
        }

    def _create_terminal(self) -> str:
        url = terminal_api_url(self.runtime.proxy.url)
        headers = {**self._headers(), "Content-Type": "application/json"}
        status, payload, _ = self._request("POST", url, headers, json.dumps({}).encode("utf-8"))
        if not is_success(status):
            detail = extract_message(payload)
            logger.error("Terminal creation failed status=%s detail=%s", status, detail)
            raise TransportError(
                f"Failed to create remote terminal ({status})",
                hint=detail or "The runtime may have been recycled; retry with --new-runtime.",
            )
        parsed = parse_json_object(payload) or {}
        name = parsed.get("name")
        if not isinstance(name, str) or not name.strip():
            raise TransportError("Remote terminal response did not include a terminal name")
        return name.strip()

    def _open_socket(self, name: str) -> WebSocketLike:
        url = terminal_websocket_url(self.runtime.proxy.url, name)
        origin = proxy_origin(self.runtime.proxy.url)
        logger.debug("Opening terminal websocket url=%s origin=%s", url, origin)
        try:
            return self._connect(url, self._headers(), origin)
        except (InvalidHandshake, InvalidURI, OSError) as exc:
            logger.error("Terminal websocket handshake failed: %s", exc)
            raise TransportError("Failed to open terminal connection", hint=str(exc)) from exc

    def _require_open(self) -> WebSocketLike:
        if self.state != ChannelState.OPEN or self._socket is None:
            raise TransportError(f"Terminal channel is not open (state={self.state.value})")
        return self._socket

    def _mark_closed(self, exc: ConnectionClosed) -> None:
        if self.state != ChannelState.OPEN:
            return
        self.state = ChannelState.CLOSED
        if isinstance(exc, ConnectionClosedOK):
            logger.debug("Terminal socket closed terminal=%s", self.terminal_name)
        else:
            logger.warning("Terminal socket closed abnormally terminal=%s: %s", self.terminal_name, exc)
