"""Line reassembly and classification for remote shell output."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

EXIT_SENTINEL_PREFIX = "__CLOUDGPU_EXIT__"
STATUS_VARIABLE = "__CLOUDGPU_STATUS"
PROMPT_PREFIX = "/# "

_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_STATUS_RE = re.compile(r"[0-9]+")
_BOILERPLATE_LINES = frozenset(
    {
        "PS1=",
        "stty -echo",
        "stty echo",
        "exit",
        "logout",
        f"{STATUS_VARIABLE}=$?",
    }
)


def strip_ansi(value: str) -> str:
    return _ANSI_ESCAPE_RE.sub("", value)


class LineBuffer:
    """Accumulates stdout text and hands back complete lines."""

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, text: str) -> list[str]:
        self._pending += text
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        return lines

    def drain(self) -> str | None:
        if not self._pending:
            return None
        line, self._pending = self._pending, ""
        return line


class LineKind(str, Enum):
    SENTINEL = "sentinel"
    BOILERPLATE = "boilerplate"
    OUTPUT = "output"


@dataclass(frozen=True)
class LineResult:
    kind: LineKind
    text: str = ""
    exit_code: int | None = None


def parse_exit_status(value: str) -> int | None:
    digits = value.strip()
    if not _STATUS_RE.fullmatch(digits):
        return None
    return int(digits, 10)


class LineProcessor:
    def __init__(self, marker: str, *, verbose: bool = False) -> None:
        self.marker = marker
        self.verbose = verbose
        self._sentinel = f"{marker}:"

    def process(self, line: str) -> LineResult:
        normalized = strip_ansi(line.replace("\r", ""))
        if normalized.startswith(PROMPT_PREFIX):
            normalized = normalized[len(PROMPT_PREFIX) :]
        target = normalized.strip()

        if target.startswith(self._sentinel):
            code = parse_exit_status(target[len(self._sentinel) :])
            return LineResult(LineKind.SENTINEL, exit_code=code)

        if not self.verbose and self.is_boilerplate(target):
            return LineResult(LineKind.BOILERPLATE)

        return LineResult(LineKind.OUTPUT, text=line if self.verbose else normalized)

    def is_boilerplate(self, target: str) -> bool:
        if target.startswith(self._sentinel):
            return True
        if target.startswith(f"printf '{EXIT_SENTINEL_PREFIX}"):
            return True
        return target in _BOILERPLATE_LINES
