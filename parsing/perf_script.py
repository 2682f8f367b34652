# parsing/perf_script.py

"""
Reads `perf script` text into SampleFrame objects.

A capture is a series of blocks: one header line at column 0
(`mongod 28451 10835064.656792: cpu-clock:`) followed by indented stack
lines (`ffffffff8149767f __schedule ([kernel.kallsyms])`), leaf first, and
a blank line. The input is read once, forward only, with one line of
lookahead.
"""

from __future__ import annotations

import logging
import math
import os
import re
from contextlib import contextmanager
from typing import Iterable, Iterator

from core.errors import PerfScriptParseError, PerfScriptReadError
from core.frames import SampleFrame, StackEntry

log = logging.getLogger(__name__)

_PID_RE = re.compile(r"\d+")
_CPU_RE = re.compile(r"\[(\d+)\]")
_TRAILING_NON_DIGITS_RE = re.compile(r"\D+$")

COMMENT_PREFIX = "#"


def is_header_line(line: str) -> bool:
    """A header is any non-empty, non-comment line that starts at column 0."""
    return bool(line) and not line[0].isspace() and not line.startswith(COMMENT_PREFIX)


class LineCursor:
    """
    Forward-only view over an iterable of lines with a single pushed-back line.
    Accepts str or bytes lines; bytes are decoded with `encoding`.
    """
    def __init__(self, lines: Iterable, encoding: str = "utf-8"):
        self._lines = iter(lines)
        self._encoding = encoding
        self._pushed: str | None = None
        self.line_number = 0

    def next_line(self) -> str | None:
        """Returns the next line without its line terminator, or None at end of input."""
        if self._pushed is not None:
            line, self._pushed = self._pushed, None
            return line
        try:
            raw = next(self._lines)
        except StopIteration:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PerfScriptReadError(f"Failed to read capture after line {self.line_number}: {e}") from e

        self.line_number += 1
        if isinstance(raw, bytes):
            raw = raw.decode(self._encoding, errors="replace")
        return raw.rstrip("\r\n")

    def push_back(self, line: str) -> None:
        self._pushed = line


def parse_header(line: str, line_number: int | None = None) -> dict:
    """
    Splits a header line into process name, pid, optional cpu, timestamp and event.
    Raises PerfScriptParseError if the pid or the timestamp is unusable.
    """
    tokens = line.split()
    if len(tokens) < 3:
        raise PerfScriptParseError("Header line has fewer than 3 fields", line, line_number)

    process_name, pid_token = tokens[0], tokens[1]
    if not _PID_RE.fullmatch(pid_token):
        raise PerfScriptParseError("Failed to parse PID", line, line_number)

    # perf script -C / --cpu output puts "[003]" between the pid and the timestamp
    ts_index = 2
    cpu = None
    cpu_match = _CPU_RE.fullmatch(tokens[2])
    if cpu_match:
        cpu = int(cpu_match.group(1))
        ts_index = 3
        if len(tokens) <= ts_index:
            raise PerfScriptParseError("Header line has no timestamp after the CPU field", line, line_number)

    ts_token = _TRAILING_NON_DIGITS_RE.sub("", tokens[ts_index])
    try:
        timestamp = float(ts_token)
    except ValueError:
        raise PerfScriptParseError("Failed to parse timestamp", line, line_number) from None
    if timestamp < 0 or not math.isfinite(timestamp):
        raise PerfScriptParseError("Timestamp must be a finite, non-negative number", line, line_number)

    event = None
    if len(tokens) > ts_index + 1:
        event = tokens[ts_index + 1].rstrip(":") or None

    return {
        "process_name": process_name,
        "pid": int(pid_token),
        "cpu": cpu,
        "timestamp": timestamp,
        "event": event,
    }


def parse_stack_line(line: str) -> StackEntry | None:
    """
    `<addr> <function tokens...> <execution space>`. The address is dropped and the
    function tokens are re-joined with single spaces. Returns None for lines with
    fewer than two tokens, which end the frame.
    """
    tokens = line.split()
    if len(tokens) < 2:
        return None
    return StackEntry(function=" ".join(tokens[1:-1]), execution_space=tokens[-1])


def parse_one_frame(cursor: LineCursor, first_line: str, line_number: int | None = None) -> SampleFrame:
    """
    Builds one frame. `first_line` is the header the caller already consumed, so the
    cursor never needs to rewind. Stops at a blank or short line (consumed), at the
    next header (pushed back for the caller), or at end of input.
    """
    header = parse_header(first_line, line_number)
    stack = []

    while True:
        line = cursor.next_line()
        if line is None:
            break
        if not line.strip():
            break
        if not line[0].isspace():
            if is_header_line(line):
                cursor.push_back(line)
            break
        entry = parse_stack_line(line)
        if entry is None:
            break
        stack.append(entry)

    return SampleFrame(stack=tuple(stack), **header)


@contextmanager
def _open_lines(source, encoding: str):
    """Yields an iterable of lines. Paths are opened (and closed) here; streams are left to the caller."""
    if isinstance(source, (str, os.PathLike)):
        try:
            f = open(source, "r", encoding=encoding, errors="replace")
        except OSError as e:
            raise PerfScriptReadError(f"Could not open capture '{source}': {e}") from e
        with f:
            yield f
    else:
        yield source


def iter_frames(source, encoding: str = "utf-8") -> Iterator[SampleFrame]:
    """
    Lazily yields frames from a path, a text or byte stream, or any iterable of lines.
    Lines outside a frame body that are not headers are ignored.
    """
    with _open_lines(source, encoding) as lines:
        cursor = LineCursor(lines, encoding)
        while True:
            line = cursor.next_line()
            if line is None:
                return
            if line.startswith(COMMENT_PREFIX):
                log.debug(f"Ignoring comment at line {cursor.line_number}")
                continue
            if is_header_line(line):
                yield parse_one_frame(cursor, line, cursor.line_number)


def parse_perf_script(source, encoding: str = "utf-8") -> list[SampleFrame]:
    """
    Parses the whole capture. All or nothing: any parse or read error propagates
    and no partial frame list is returned.
    """
    frames = list(iter_frames(source, encoding))
    log.debug(f"Parsed {len(frames):,} frames.")
    return frames
