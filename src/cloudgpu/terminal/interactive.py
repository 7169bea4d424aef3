"""Interactive pass-through session between the local TTY and a remote terminal."""

from __future__ import annotations

import codecs
import logging as py_logging
import os
import select
import shutil
import signal
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol, TextIO

from cloudgpu.errors import TransportError
from cloudgpu.terminal.frames import SetSize, Stderr, Stdin, Stdout, TerminalFrame

logger = py_logging.getLogger(__name__)

ESCAPE_CHAR = "~"
DISCONNECT_CHAR = "."
INPUT_POLL_SECONDS = 0.1
EOF_CHAR = "\x04"


class SessionChannel(Protocol):
    def open(self) -> object: ...

    def send(self, frame: TerminalFrame) -> None: ...

    def frames(self) -> Iterator[TerminalFrame]: ...

    def close(self) -> None: ...


class LocalTerminal(Protocol):
    def size(self) -> tuple[int, int]: ...

    def raw_mode(self) -> AbstractContextManager[None]: ...

    def read_input(self, timeout: float) -> str | None: ...

    def install_resize_handler(self, callback: Callable[[], None]) -> Callable[[], None]: ...


class PosixTerminal:
    def __init__(self, stdin: TextIO | None = None) -> None:
        self._stdin = stdin or sys.stdin
        self._fd = self._stdin.fileno()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def size(self) -> tuple[int, int]:
        size = shutil.get_terminal_size()
        return size.lines, size.columns

    @contextmanager
    def raw_mode(self) -> Iterator[None]:
        if not os.isatty(self._fd):
            yield
            return
        import termios
        import tty

        saved = termios.tcgetattr(self._fd)
        try:
            tty.setraw(self._fd)
            yield
        finally:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, saved)

    def read_input(self, timeout: float) -> str | None:
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return ""
        data = os.read(self._fd, 1024)
        if not data:
            return None
        return self._decoder.decode(data)

    def install_resize_handler(self, callback: Callable[[], None]) -> Callable[[], None]:
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is None or threading.current_thread() is not threading.main_thread():
            return lambda: None
        previous = signal.signal(sigwinch, lambda *_: callback())
        return lambda: signal.signal(sigwinch, previous)


class EscapeFilter:
    """Detects ``<newline> ~ .`` in keystrokes; ``~~`` sends a literal tilde."""

    def __init__(self) -> None:
        self._at_line_start = True
        self._pending_escape = False

    def feed(self, text: str) -> tuple[str, bool]:
        forwarded: list[str] = []
        for char in text:
            if self._pending_escape:
                self._pending_escape = False
                if char == DISCONNECT_CHAR:
                    return "".join(forwarded), True
                if char != ESCAPE_CHAR:
                    forwarded.append(ESCAPE_CHAR)
                forwarded.append(char)
                self._at_line_start = char in "\r\n"
                continue
            if self._at_line_start and char == ESCAPE_CHAR:
                self._pending_escape = True
                continue
            forwarded.append(char)
            self._at_line_start = char in "\r\n"
        return "".join(forwarded), False


class InteractiveSession:
    def __init__(
        self,
        channel: SessionChannel,
        *,
        startup_command: str = "",
        terminal: LocalTerminal | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        on_connected: Callable[[], None] | None = None,
    ) -> None:
        self.channel = channel
        self.startup_command = startup_command
        self._on_connected = on_connected
        self._terminal = terminal or PosixTerminal()
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._remote_done = threading.Event()
        self._resize_pending = threading.Event()
        self._reader_error: BaseException | None = None

    def start(self) -> None:
        self.channel.open()
        if self._on_connected is not None:
            self._on_connected()
        self._send_size()
        if self.startup_command.strip():
            command = self.startup_command
            if not command.endswith("\n"):
                command += "\n"
            logger.debug("Injecting startup command")
            self.channel.send(Stdin(command))

        reader = threading.Thread(target=self._pump_remote, name="cloudgpu-terminal-reader", daemon=True)
        reader.start()
        restore_resize = self._terminal.install_resize_handler(self._resize_pending.set)
        try:
            with self._terminal.raw_mode():
                self._pump_local()
        finally:
            restore_resize()
            self.channel.close()
            reader.join()

        if self._reader_error is not None:
            raise self._reader_error
        logger.debug("Interactive session ended")

    def _pump_remote(self) -> None:
        try:
            for frame in self.channel.frames():
                if isinstance(frame, Stdout):
                    self._stdout.write(frame.text)
                    self._stdout.flush()
                elif isinstance(frame, Stderr):
                    self._stderr.write(frame.text)
                    self._stderr.flush()
        except TransportError as exc:
            self._reader_error = exc
        finally:
            self._remote_done.set()

    def _pump_local(self) -> None:
        escape = EscapeFilter()
        eof_sent = False
        while not self._remote_done.is_set():
            if self._resize_pending.is_set():
                self._resize_pending.clear()
                self._send_size()
            if eof_sent:
                self._remote_done.wait(INPUT_POLL_SECONDS)
                continue
            text = self._terminal.read_input(INPUT_POLL_SECONDS)
            if text is None:
                # Local input closed: ask the remote shell to finish on its own.
                self._send_input(EOF_CHAR)
                eof_sent = True
                continue
            if not text:
                continue
            forwarded, disconnect = escape.feed(text)
            if forwarded:
                self._send_input(forwarded)
            if disconnect:
                logger.info("Disconnect requested from local terminal")
                return

    def _send_input(self, text: str) -> None:
        if self._remote_done.is_set():
            return
        try:
            self.channel.send(Stdin(text))
        except TransportError as exc:
            logger.debug("Dropping input after channel shutdown: %s", exc)

    def _send_size(self) -> None:
        rows, cols = self._terminal.size()
        if rows <= 0 or cols <= 0:
            return
        try:
            self.channel.send(SetSize(rows=rows, cols=cols))
        except TransportError as exc:
            logger.debug("Resize not delivered: %s", exc)
