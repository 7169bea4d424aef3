from __future__ import annotations

import pytest

from cloudgpu.terminal.lines import (
    PROMPT_PREFIX,
    LineBuffer,
    LineKind,
    LineProcessor,
    parse_exit_status,
    strip_ansi,
)

MARKER = "__CLOUDGPU_EXIT__test-marker"


def test_line_buffer_returns_complete_lines_and_keeps_remainder() -> None:
    buffer = LineBuffer()

    assert buffer.feed("hel") == []
    assert buffer.feed("lo\nwor") == ["hello"]
    assert buffer.pending == "wor"
    assert buffer.feed("ld\n\nx") == ["world", ""]
    assert buffer.drain() == "x"
    assert buffer.drain() is None


def test_line_buffer_drain_is_empty_when_last_line_terminated() -> None:
    buffer = LineBuffer()
    buffer.feed("done\n")
    assert buffer.drain() is None


def test_strip_ansi_removes_color_and_mode_sequences() -> None:
    assert strip_ansi("\x1b[01;32mgreen\x1b[0m") == "green"
    assert strip_ansi("\x1b[?2004hprompt\x1b[?2004l") == "prompt"
    assert strip_ansi("plain") == "plain"


def test_sentinel_line_captures_exit_code() -> None:
    processor = LineProcessor(MARKER)

    result = processor.process(f"{MARKER}:137\r")

    assert result.kind == LineKind.SENTINEL
    assert result.exit_code == 137


def test_sentinel_behind_prompt_and_escapes_is_recognized() -> None:
    processor = LineProcessor(MARKER)

    result = processor.process(f"\x1b[?2004l{PROMPT_PREFIX}{MARKER}:0")

    assert result.kind == LineKind.SENTINEL
    assert result.exit_code == 0


@pytest.mark.parametrize("suffix", ["abc", "", "12abc", "²"])
def test_malformed_sentinel_leaves_exit_code_unset(suffix: str) -> None:
    result = LineProcessor(MARKER).process(f"{MARKER}:{suffix}")

    assert result.kind == LineKind.SENTINEL
    assert result.exit_code is None


def test_parse_exit_status_accepts_only_unsigned_digits() -> None:
    assert parse_exit_status(" 42 ") == 42
    assert parse_exit_status("007") == 7
    assert parse_exit_status("-1") is None
    assert parse_exit_status("+5") is None
    assert parse_exit_status("0x10") is None


@pytest.mark.parametrize(
    "line",
    [
        "stty -echo",
        "stty echo",
        "PS1=",
        "exit",
        "logout",
        "__CLOUDGPU_STATUS=$?",
        "printf '__CLOUDGPU_EXIT__abc:%s\\n' \"$__CLOUDGPU_STATUS\"",
        f"{PROMPT_PREFIX}stty -echo\r",
    ],
)
def test_boilerplate_is_suppressed_in_normal_mode(line: str) -> None:
    assert LineProcessor(MARKER).process(line).kind == LineKind.BOILERPLATE


def test_boilerplate_is_forwarded_raw_in_verbose_mode() -> None:
    result = LineProcessor(MARKER, verbose=True).process(f"{PROMPT_PREFIX}stty -echo\r")

    assert result.kind == LineKind.OUTPUT
    assert result.text == f"{PROMPT_PREFIX}stty -echo\r"


def test_output_line_drops_prompt_and_escapes() -> None:
    result = LineProcessor(MARKER).process(f"{PROMPT_PREFIX}\x1b[1mTesla T4\x1b[0m  \r")

    assert result.kind == LineKind.OUTPUT
    assert result.text == "Tesla T4  "


def test_words_containing_exit_are_not_boilerplate() -> None:
    result = LineProcessor(MARKER).process("exit code was fine")

    assert result.kind == LineKind.OUTPUT
    assert result.text == "exit code was fine"


def test_other_markers_are_not_sentinels() -> None:
    result = LineProcessor(MARKER).process("__CLOUDGPU_EXIT__other:0")

    assert result.kind == LineKind.OUTPUT
