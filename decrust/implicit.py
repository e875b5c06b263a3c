"""Implicit data attached to errors: timestamps, thread identity and source locations."""

from __future__ import annotations

import inspect
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

__all__ = [
    "Timestamp",
    "ThreadId",
    "Location",
    "location",
    "implicit_data",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UNSIGNED = re.compile(r"\+?[0-9]+")
_U64_LIMIT = 2**64

T = TypeVar("T")


def _as_aware(time: datetime) -> datetime:
    return time if time.tzinfo is not None else time.replace(tzinfo=timezone.utc)


def _format_timestamp(time: datetime) -> str:
    delta = _as_aware(time) - _EPOCH
    if delta < timedelta(0):
        return "<invalid timestamp>"
    secs = delta.days * 86400 + delta.seconds
    millis = delta.microseconds // 1000
    return f"{secs}.{millis:03} (epoch: {secs})"


@dataclass(frozen=True)
class Timestamp:
    """A point in time together with its rendered form."""

    instant: datetime
    formatted: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "formatted", _format_timestamp(self.instant))

    @classmethod
    def now(cls) -> Timestamp:
        """The current time."""
        return cls(datetime.now(timezone.utc))

    @classmethod
    def from_system_time(cls, time: datetime) -> Timestamp:
        """Wrap a given time; a naive datetime is taken to be UTC."""
        return cls(_as_aware(time))

    @classmethod
    def generate(cls) -> Timestamp:
        """Generate the default implicit timestamp (the current time)."""
        return cls.now()

    @classmethod
    def generate_with_context(cls, context: Mapping[str, str]) -> Timestamp:
        """Use ``context["timestamp"]`` as seconds since the epoch when it parses.

        Anything else, including a value too large to represent, yields the
        current time.
        """
        raw = context.get("timestamp")
        if raw is not None and _UNSIGNED.fullmatch(raw):
            secs = int(raw)
            if secs < _U64_LIMIT:
                try:
                    return cls.from_system_time(_EPOCH + timedelta(seconds=secs))
                except OverflowError:
                    pass
        return cls.now()

    def __str__(self) -> str:
        return self.formatted


@dataclass(frozen=True)
class ThreadId:
    """Identity of a thread: its identifier and, when known, its name."""

    ident: int
    name: str | None = None
    formatted: str = field(init=False)

    def __post_init__(self) -> None:
        text = str(self.ident) if self.name is None else f"{self.name}({self.ident})"
        object.__setattr__(self, "formatted", text)

    @classmethod
    def current(cls) -> ThreadId:
        """The thread that is running now."""
        return cls(threading.get_ident(), threading.current_thread().name)

    @classmethod
    def from_components(cls, ident: int, name: str | None) -> ThreadId:
        """Build from an identifier and an optional name."""
        return cls(ident, name)

    @classmethod
    def generate(cls) -> ThreadId:
        """Generate the default implicit thread identity (the current thread)."""
        return cls.current()

    @classmethod
    def generate_with_context(cls, context: Mapping[str, str]) -> ThreadId:
        """Only the current thread can be described; the context is ignored."""
        return cls.current()

    def __str__(self) -> str:
        return self.formatted


@dataclass(frozen=True)
class Location:
    """A position in source code, optionally described further."""

    file: str
    line: int
    column: int
    rendered: str = ""

    @classmethod
    def with_context(cls, file: str, line: int, column: int, context: str) -> Location:
        """A location annotated with a description."""
        return cls(file, line, column, f"{file}:{line}:{column} ({context})")

    @classmethod
    def with_function(cls, file: str, line: int, column: int, function: str) -> Location:
        """A location annotated with the enclosing function."""
        return cls(file, line, column, f"{file}:{line}:{column} in {function}")

    @classmethod
    def with_context_and_function(
        cls, file: str, line: int, column: int, context: str, function: str
    ) -> Location:
        """A location annotated with both the function and a description."""
        return cls(file, line, column, f"{file}:{line}:{column} in {function} ({context})")

    def formatted(self) -> str:
        """The full description, or ``file:line:column`` when there is none."""
        return self.rendered or f"{self.file}:{self.line}:{self.column}"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


def _caller_position(depth: int) -> tuple[str, int, int]:
    """File, line and 1-based column of the frame ``depth`` levels above the caller."""
    frame = inspect.currentframe()
    try:
        for _ in range(depth + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return "<unknown>", 0, 0
        info = inspect.getframeinfo(frame, context=0)
        positions = getattr(info, "positions", None)
        col_offset = getattr(positions, "col_offset", None)
        column = col_offset + 1 if col_offset is not None else 1
        return info.filename, info.lineno, column
    finally:
        del frame


def location(context: str | None = None, function: str | None = None) -> Location:
    """The location of the call to this function, optionally described."""
    file, line, column = _caller_position(1)
    if context is not None and function is not None:
        return Location.with_context_and_function(file, line, column, context, function)
    if context is not None:
        return Location.with_context(file, line, column, context)
    if function is not None:
        return Location.with_function(file, line, column, function)
    return Location(file, line, column, f"{file}:{line}:{column}")


def implicit_data(
    kind: type[T],
    context: Mapping[str, str] | None = None,
    source: BaseException | None = None,
    force: bool = False,
    timestamp: Any = None,
    with_location: bool = False,
) -> T:
    """Generate implicit data of type ``kind`` at the call site.

    ``kind`` provides ``generate()`` and ``generate_with_context(context)``,
    and may provide ``generate_with_source(source)``. The options ``force``,
    ``timestamp`` and ``with_location`` add the keys ``force_backtrace``,
    ``timestamp`` and ``file``/``line``/``column`` to the context.
    """
    wants_context = (
        context is not None or force or timestamp is not None or with_location
    )
    if source is not None:
        if wants_context:
            raise TypeError("source cannot be combined with context options")
        with_source = getattr(kind, "generate_with_source", None)
        if with_source is not None:
            return with_source(source)
        return kind.generate()  # type: ignore[attr-defined]
    if not wants_context:
        return kind.generate()  # type: ignore[attr-defined]
    merged: dict[str, str] = dict(context or {})
    if force:
        merged["force_backtrace"] = "true"
    if timestamp is not None:
        merged["timestamp"] = str(timestamp)
    if with_location:
        file, line, column = _caller_position(1)
        merged["file"] = file
        merged["line"] = str(line)
        merged["column"] = str(column)
    return kind.generate_with_context(merged)  # type: ignore[attr-defined]