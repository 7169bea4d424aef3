"""Non-interactive command execution with sentinel-based exit capture.

The terminal protocol has no exit-status frame, so the command is wrapped in a
shell prologue/epilogue that prints ``<marker>:<status>`` before the shell
exits. Output lines are then filtered through :class:`LineProcessor`.
"""

from __future__ import annotations

import logging as py_logging
import sys
import uuid
from collections.abc import Callable, Iterator
from typing import Protocol, TextIO

from cloudgpu.errors import EmptyCommandError
from cloudgpu.terminal.frames import Disconnect, Stderr, Stdin, Stdout, TerminalFrame
from cloudgpu.terminal.lines import (
    EXIT_SENTINEL_PREFIX,
    STATUS_VARIABLE,
    LineBuffer,
    LineKind,
    LineProcessor,
)

logger = py_logging.getLogger(__name__)

FALLBACK_EXIT_CODE = 1


class CommandChannel(Protocol):
    def open(self) -> object: ...

    def send(self, frame: TerminalFrame) -> None: ...

    def frames(self) -> Iterator[TerminalFrame]: ...

    def close(self) -> None: ...


def new_exit_marker() -> str:
    return f"{EXIT_SENTINEL_PREFIX}{uuid.uuid4()}"


def build_command_payload(command: str, marker: str) -> str:
    return "\n".join(
        [
            "stty -echo",
            "PS1=",
            command,
            f"{STATUS_VARIABLE}=$?",
            "stty echo",
            f"printf '{marker}:%s\\n' \"${STATUS_VARIABLE}\"",
            "exit",
            "",
        ]
    )


class CommandExecutor:
    def __init__(
        self,
        channel: CommandChannel,
        *,
        verbose: bool = False,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        marker_factory: Callable[[], str] = new_exit_marker,
        label: str = "",
    ) -> None:
        self.channel = channel
        self.verbose = verbose
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._marker_factory = marker_factory
        self._label = label
        self._exit_code: int | None = None

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    def run(self, command: str) -> int:
        if not command.strip():
            raise EmptyCommandError()
        if self.verbose:
            logger.info("Running remote command on %s: %s", self._label or "runtime", command)

        marker = self._marker_factory()
        processor = LineProcessor(marker, verbose=self.verbose)
        buffer = LineBuffer()
        self._exit_code = None

        self.channel.open()
        try:
            self.channel.send(Stdin(build_command_payload(command, marker)))
            for frame in self.channel.frames():
                self._handle_frame(frame, buffer, processor)
        except KeyboardInterrupt:
            logger.warning("Interrupted; closing remote terminal.")
        finally:
            self.channel.close()

        trailing = buffer.drain()
        if trailing is not None:
            self._flush_line(trailing, processor)
        self._stdout.flush()

        if self._exit_code is None:
            logger.warning(
                "Command finished without reporting an exit code; assuming failure (exit code %s).",
                FALLBACK_EXIT_CODE,
            )
            return FALLBACK_EXIT_CODE
        return self._exit_code

    def _handle_frame(self, frame: TerminalFrame, buffer: LineBuffer, processor: LineProcessor) -> None:
        if isinstance(frame, Stdout):
            for line in buffer.feed(frame.text):
                self._flush_line(line, processor)
        elif isinstance(frame, Stderr):
            self._stderr.write(frame.text)
            self._stderr.flush()
        elif isinstance(frame, Disconnect):
            if self.verbose:
                logger.info("Remote runtime disconnected. %s", frame.reason)
        else:
            logger.debug("Ignoring %s frame during command run", type(frame).__name__)

    def _flush_line(self, line: str, processor: LineProcessor) -> None:
        result = processor.process(line)
        if result.kind == LineKind.SENTINEL:
            if result.exit_code is not None:
                self._exit_code = result.exit_code
            else:
                logger.debug("Ignoring malformed exit sentinel line")
            return
        if result.kind == LineKind.BOILERPLATE:
            return
        if result.text:
            self._stdout.write(f"{result.text}\n")
