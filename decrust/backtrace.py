"""Stack backtraces that honour environment settings and parse into frames."""

from __future__ import annotations

import enum
import functools
import os
import re
import threading
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

__all__ = [
    "BacktraceStatus",
    "BacktraceFrame",
    "DecrustBacktrace",
    "parse_frame_line",
    "parse_location",
    "parse_backtrace_text",
    "should_capture_from_env",
    "LIB_BACKTRACE_VAR",
    "BACKTRACE_VAR",
]

LIB_BACKTRACE_VAR = "DECRUST_LIB_BACKTRACE"
BACKTRACE_VAR = "DECRUST_BACKTRACE"

_UNSIGNED = re.compile(r"\+?[0-9]+")
_U32_LIMIT = 2**32


class BacktraceStatus(enum.Enum):
    """Outcome of a backtrace capture."""

    CAPTURED = "captured"
    DISABLED = "disabled"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class BacktraceFrame:
    """One frame of a backtrace: a symbol and, when known, its location."""

    symbol: str
    file: str | None = None
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        text = self.symbol
        if self.file is not None:
            text += f" at {self.file}"
            if self.line is not None:
                text += f":{self.line}"
                if self.column is not None:
                    text += f":{self.column}"
        return text


def _parse_u32(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value < _U32_LIMIT else None


def parse_location(location: str) -> tuple[str | None, int | None, int | None]:
    """Split ``file:line:column`` into its parts; unparsable numbers become None."""
    parts = location.rsplit(":", 2)
    if len(parts) == 3:
        file, line, column = parts
        return file, _parse_u32(line), _parse_u32(column)
    if len(parts) == 2:
        file, line = parts
        return file, _parse_u32(line), None
    return parts[0], None, None


def parse_frame_line(line: str) -> BacktraceFrame | None:
    """Parse a line such as ``0: symbol at file:line:col``; None if it is not a frame."""
    trimmed = line.strip()
    number, sep, rest = trimmed.partition(":")
    if not sep or not _UNSIGNED.fullmatch(number.strip()):
        return None
    rest = rest.strip()
    at_pos = rest.rfind(" at ")
    if at_pos == -1:
        return BacktraceFrame(symbol=rest)
    symbol = rest[:at_pos].strip()
    file, line_no, column = parse_location(rest[at_pos + 4 :].strip())
    return BacktraceFrame(symbol=symbol, file=file, line=line_no, column=column)


def parse_backtrace_text(text: str) -> list[BacktraceFrame]:
    """Parse every frame line of a rendered backtrace, skipping other lines."""
    return [
        frame
        for frame in map(parse_frame_line, text.splitlines())
        if frame is not None
    ]


def should_capture_from_env(environ: Mapping[str, str] | None = None) -> bool:
    """Decide from the environment whether backtraces should be captured.

    The library-specific variable takes priority; capture is on only for
    ``1`` or ``full`` (case-insensitive).
    """
    env = os.environ if environ is None else environ
    for name in (LIB_BACKTRACE_VAR, BACKTRACE_VAR):
        if name in env:
            value = env[name]
            return value == "1" or value.lower() == "full"
    return False


@functools.lru_cache(maxsize=None)
def _env_capture_enabled() -> bool:
    return should_capture_from_env(os.environ)


def _render_current_stack() -> str:
    frames = [
        frame
        for frame in traceback.extract_stack()
        if frame.filename != __file__
    ]
    lines = []
    for index, frame in enumerate(reversed(frames)):
        location = f"{frame.filename}:{frame.lineno}"
        colno = getattr(frame, "colno", None)
        if colno is not None:
            location += f":{colno + 1}"
        lines.append(f"{index:4}: {frame.name} at {location}")
    return "\n".join(lines)


class DecrustBacktrace:
    """A captured (or deliberately disabled) stack backtrace with thread info."""

    __slots__ = (
        "_text",
        "capture_enabled",
        "capture_timestamp",
        "thread_id",
        "thread_name",
    )

    def __init__(self, text: str | None, capture_enabled: bool) -> None:
        thread = threading.current_thread()
        self._text = text
        self.capture_enabled = capture_enabled
        self.capture_timestamp = datetime.now(timezone.utc)
        self.thread_id = threading.get_ident()
        self.thread_name: str | None = thread.name

    @classmethod
    def capture(cls) -> DecrustBacktrace:
        """Capture a backtrace if the environment asks for one."""
        if _env_capture_enabled():
            return cls(_render_current_stack(), True)
        return cls(None, False)

    @classmethod
    def force_capture(cls) -> DecrustBacktrace:
        """Capture a backtrace regardless of the environment."""
        return cls(_render_current_stack(), True)

    @classmethod
    def disabled(cls) -> DecrustBacktrace:
        """Create a backtrace that holds nothing."""
        return cls(None, False)

    @classmethod
    def from_text(cls, text: str) -> DecrustBacktrace:
        """Wrap an already rendered backtrace."""
        return cls(text, True)

    @classmethod
    def generate(cls) -> DecrustBacktrace:
        """Generate a backtrace the default way (same as :meth:`capture`)."""
        return cls.capture()

    @classmethod
    def generate_with_source(cls, source: BaseException) -> DecrustBacktrace:
        """Generate a backtrace for an error caused by ``source``."""
        return cls.capture()

    @classmethod
    def generate_with_context(cls, context: Mapping[str, str]) -> DecrustBacktrace:
        """Generate a backtrace, forcing capture when ``force_backtrace`` is ``"true"``."""
        if context.get("force_backtrace") == "true":
            return cls.force_capture()
        return cls.capture()

    def status(self) -> BacktraceStatus:
        """Whether this backtrace holds a capture."""
        if self._text is None:
            return BacktraceStatus.DISABLED
        return BacktraceStatus.CAPTURED

    def extract_frames(self) -> list[BacktraceFrame]:
        """The frames of the backtrace, innermost first."""
        if self._text is None:
            return []
        return parse_backtrace_text(self._text)

    def as_text(self) -> str | None:
        """The rendered backtrace, or None when disabled."""
        return self._text

    def copy(self) -> DecrustBacktrace:
        """A new backtrace with the same capture setting, taken afresh."""
        if self.capture_enabled:
            return type(self).force_capture()
        return type(self).disabled()

    def __str__(self) -> str:
        if self._text is None:
            return "<backtrace disabled>"
        if self.thread_name is not None:
            thread = f"Thread: {self.thread_name} ({self.thread_id})"
        else:
            thread = f"Thread: {self.thread_id}"
        return (
            f"Backtrace captured at: {self.capture_timestamp.isoformat()}\n"
            f"{thread}\n"
            f"{self._text}"
        )

    def __repr__(self) -> str:
        return (
            f"DecrustBacktrace(status={self.status().name}, "
            f"thread_id={self.thread_id}, thread_name={self.thread_name!r})"
        )