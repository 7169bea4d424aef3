"""Wire codec for terminal frames.

Frames travel as JSON arrays whose first element is a tag string::

    ["stdout", "text"]
    ["set_size", rows, cols, width_px, height_px]

Unknown tags decode to ``None`` so newer server frames are ignored instead of
tearing the channel down.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Union

from cloudgpu.errors import ProtocolError


@dataclass(frozen=True)
class Stdout:
    text: str


@dataclass(frozen=True)
class Stderr:
    text: str


@dataclass(frozen=True)
class Stdin:
    text: str


@dataclass(frozen=True)
class Disconnect:
    reason: str = ""


@dataclass(frozen=True)
class SetSize:
    rows: int
    cols: int
    width_px: int = 0
    height_px: int = 0


TerminalFrame = Union[Stdout, Stderr, Stdin, Disconnect, SetSize]

_TEXT_FRAMES: dict[str, type[Stdout] | type[Stderr] | type[Stdin] | type[Disconnect]] = {
    "stdout": Stdout,
    "stderr": Stderr,
    "stdin": Stdin,
    "disconnect": Disconnect,
}
_TAGS = {value: key for key, value in _TEXT_FRAMES.items()}
_SET_SIZE = "set_size"


def encode_frame(frame: TerminalFrame) -> str:
    if isinstance(frame, SetSize):
        payload: list[object] = [_SET_SIZE, frame.rows, frame.cols, frame.width_px, frame.height_px]
    elif isinstance(frame, Disconnect):
        payload = [_TAGS[Disconnect], frame.reason]
    else:
        payload = [_TAGS[type(frame)], frame.text]
    return json.dumps(payload, ensure_ascii=False)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_frame(raw: str | bytes) -> TerminalFrame | None:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("Terminal frame is not valid UTF-8") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Terminal frame is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, list) or not payload or not isinstance(payload[0], str):
        raise ProtocolError("Terminal frame must be an array starting with a tag")

    tag = payload[0]
    if tag == _SET_SIZE:
        dims = payload[1:5]
        if len(dims) != 4 or not all(_is_int(value) for value in dims):
            raise ProtocolError("set_size frame requires four integers")
        return SetSize(rows=dims[0], cols=dims[1], width_px=dims[2], height_px=dims[3])

    frame_type = _TEXT_FRAMES.get(tag)
    if frame_type is None:
        return None
    if frame_type is Disconnect and len(payload) < 2:
        return Disconnect()
    if len(payload) < 2 or not isinstance(payload[1], str):
        raise ProtocolError(f"{tag} frame requires a string payload")
    return frame_type(payload[1])
