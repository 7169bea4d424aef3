"""Remote terminal transport package."""

from .channel import ChannelState, TerminalChannel
from .executor import CommandExecutor, build_command_payload, new_exit_marker
from .frames import Disconnect, SetSize, Stderr, Stdin, Stdout, TerminalFrame, decode_frame, encode_frame
from .interactive import EscapeFilter, InteractiveSession, PosixTerminal
from .lines import LineBuffer, LineKind, LineProcessor, LineResult, strip_ansi

__all__ = [
    "build_command_payload",
    "ChannelState",
    "CommandExecutor",
    "decode_frame",
    "Disconnect",
    "encode_frame",
    "EscapeFilter",
    "InteractiveSession",
    "LineBuffer",
    "LineKind",
    "LineProcessor",
    "LineResult",
    "new_exit_marker",
    "PosixTerminal",
    "SetSize",
    "Stderr",
    "Stdin",
    "Stdout",
    "strip_ansi",
    "TerminalChannel",
    "TerminalFrame",
]
