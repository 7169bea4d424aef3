"""POSIX command-line assembly for remote execution."""

from __future__ import annotations

import shlex
from collections.abc import Sequence


def build_posix_command(args: Sequence[str], *, quote_first_arg: bool = False) -> str:
    """Join argv into one shell line.

    The first word is kept verbatim unless ``quote_first_arg`` is set so a
    single quoted argument like ``"nvidia-smi && ls"`` still runs as a pipeline.
    """
    words = list(args)
    if not words:
        return ""
    head = shlex.quote(words[0]) if quote_first_arg else words[0]
    return " ".join([head, *(shlex.quote(word) for word in words[1:])])
