"""Draw targets: where progress output is painted, and how often."""

from __future__ import annotations

import math
import os
import sys
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, TextIO

from tallybar.textwidth import measure_text_width

MAX_BURST = 20
DEFAULT_REFRESH_RATE = 20
_DEFAULT_SIZE = (24, 80)


def _now() -> int:
    return time.monotonic_ns()


class MultiProgressAlignment(Enum):
    """Vertical alignment of a multi progress when some of its bars go away."""

    TOP = "top"
    BOTTOM = "bottom"


class TermLike(ABC):
    """Something that behaves like a terminal for drawing purposes."""

    @abstractmethod
    def width(self) -> int:
        """Number of columns."""

    @abstractmethod
    def height(self) -> int:
        """Number of rows."""

    @abstractmethod
    def move_cursor_up(self, n: int) -> None:
        """Move the cursor up ``n`` lines."""

    @abstractmethod
    def move_cursor_down(self, n: int) -> None:
        """Move the cursor down ``n`` lines."""

    @abstractmethod
    def clear_line(self) -> None:
        """Clear the current line and return to its start."""

    @abstractmethod
    def write_line(self, s: str) -> None:
        """Write ``s`` followed by a newline."""

    @abstractmethod
    def write_str(self, s: str) -> None:
        """Write ``s`` without a newline."""

    @abstractmethod
    def flush(self) -> None:
        """Flush any pending output."""


class Term(TermLike):
    """A buffered terminal on top of a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._buffer: list[str] = []

    def is_term(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        try:
            return bool(isatty()) if isatty is not None else False
        except (OSError, ValueError):
            return False

    def _size(self) -> tuple[int, int]:
        if not self.is_term():
            return _DEFAULT_SIZE
        try:
            size = os.get_terminal_size(self._stream.fileno())
        except (OSError, ValueError, AttributeError):
            return _DEFAULT_SIZE
        return size.lines, size.columns

    def width(self) -> int:
        return self._size()[1]

    def height(self) -> int:
        return self._size()[0]

    def move_cursor_up(self, n: int) -> None:
        if n > 0:
            self._buffer.append(f"\x1b[{n}A")

    def move_cursor_down(self, n: int) -> None:
        if n > 0:
            self._buffer.append(f"\x1b[{n}B")

    def clear_line(self) -> None:
        self._buffer.append("\r\x1b[2K")

    def write_line(self, s: str) -> None:
        self._buffer.append(s + "\n")

    def write_str(self, s: str) -> None:
        self._buffer.append(s)

    def flush(self) -> None:
        if self._buffer:
            self._stream.write("".join(self._buffer))
            self._buffer.clear()
        self._stream.flush()


@dataclass(frozen=True)
class LineAdjust:
    """A change to the remembered line count of a terminal target.

    ``retain`` false adds lines so the next draw also clears them; true
    subtracts them so the next draw leaves them on screen.
    """

    count: int
    retain: bool

    @classmethod
    def clear(cls, count: int) -> LineAdjust:
        return cls(count, retain=False)

    @classmethod
    def keep(cls, count: int) -> LineAdjust:
        return cls(count, retain=True)

    def apply(self, last_line_count: int) -> int:
        if self.retain:
            return max(last_line_count - self.count, 0)
        return last_line_count + self.count


class RateLimiter:
    """Limit draws to a rate while allowing occasional bursts.

    Times are monotonic nanosecond counts.
    """

    def __init__(self, rate: int, now: int | None = None) -> None:
        if not 1 <= rate <= 255:
            raise ValueError(f"refresh rate must be between 1 and 255, got {rate}")
        self.interval_ms = 1000 // rate
        self.capacity = MAX_BURST
        self.prev = _now() if now is None else now

    def allow(self, now: int) -> bool:
        if now < self.prev:
            return False
        elapsed = now - self.prev
        interval_ns = self.interval_ms * 1_000_000
        if self.capacity == 0 and elapsed < interval_ns:
            return False
        new = (elapsed // 1_000_000) // self.interval_ms
        remainder = elapsed % interval_ns
        self.capacity = min(MAX_BURST, self.capacity + new - 1)
        self.prev = now - remainder
        return True


@dataclass
class DrawState:
    """The lines an element wants on screen."""

    lines: list[str] = field(default_factory=list)
    orphan_lines_count: int = 0
    move_cursor: bool = False
    alignment: MultiProgressAlignment = MultiProgressAlignment.TOP

    def draw_to_term(self, term: TermLike, last_line_count: int) -> int:
        """Paint the lines over the previous output; return the new line count."""
        if self.lines and self.move_cursor:
            term.move_cursor_up(last_line_count)
        else:
            n = last_line_count
            term.move_cursor_up(max(n - 1, 0))
            for i in range(n):
                term.clear_line()
                if i + 1 != n:
                    term.move_cursor_down(1)
            term.move_cursor_up(max(n - 1, 0))

        shift = 0
        if self.alignment is MultiProgressAlignment.BOTTOM and len(self.lines) < last_line_count:
            shift = last_line_count - len(self.lines)
            for _ in range(shift):
                term.write_line("")

        term_height = term.height()
        term_width = term.width()
        count = len(self.lines)
        real_len = 0
        last_line_filler = 0
        for idx, line in enumerate(self.lines):
            line_width = measure_text_width(line)
            if not line:
                diff = 1
            elif term_width == 0:
                diff = sys.maxsize if line_width else 1
            else:
                diff = max(math.ceil(line_width / term_width), 1)
            if (
                self.orphan_lines_count <= idx
                and real_len - self.orphan_lines_count + diff > term_height
            ):
                break
            real_len += diff
            if idx != 0:
                term.write_line("")
            term.write_str(line)
            if idx + 1 == count:
                last_line_filler = max(term_width - line_width, 0)
        term.write_str(" " * last_line_filler)
        term.flush()
        return real_len - self.orphan_lines_count + shift

    def reset(self) -> None:
        self.lines.clear()
        self.orphan_lines_count = 0


@dataclass
class _TermSink:
    term: Any
    rate_limiter: RateLimiter | None
    requires_tty: bool
    last_line_count: int = 0
    draw_state: DrawState = field(default_factory=DrawState)


@dataclass
class _Remote:
    state: Any
    idx: int


class Drawable:
    """A target that is ready to be drawn to right now."""

    def __init__(
        self,
        sink: _TermSink | None = None,
        remote: _Remote | None = None,
        force_draw: bool = False,
        now: int = 0,
    ) -> None:
        if (sink is None) == (remote is None):
            raise ValueError("a drawable needs exactly one of a terminal or a multi state")
        self._sink = sink
        self._remote = remote
        self._force_draw = force_draw
        self._now = now

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        if self._sink is not None:
            self._sink.last_line_count = adjust.apply(self._sink.last_line_count)

    @contextmanager
    def state(self) -> Iterator[DrawState]:
        """Yield the draw state, emptied, for filling in before ``draw``."""
        if self._sink is not None:
            draw_state = self._sink.draw_state
            draw_state.reset()
            yield draw_state
        else:
            with self._remote.state.draw_state(self._remote.idx) as draw_state:
                draw_state.reset()
                yield draw_state

    def clear(self) -> None:
        with self.state():
            pass
        self.draw()

    def draw(self) -> None:
        if self._sink is not None:
            sink = self._sink
            sink.last_line_count = sink.draw_state.draw_to_term(sink.term, sink.last_line_count)
        else:
            self._remote.state.draw(self._force_draw, None, self._now)


class ProgressDrawTarget:
    """Where a progress bar or a multi progress paints, and how often."""

    def __init__(self, kind: _TermSink | _Remote | None = None) -> None:
        self._kind = kind

    @classmethod
    def stdout(cls, refresh_rate: int = DEFAULT_REFRESH_RATE) -> ProgressDrawTarget:
        return cls.term(Term(sys.stdout), refresh_rate)

    @classmethod
    def stderr(cls, refresh_rate: int = DEFAULT_REFRESH_RATE) -> ProgressDrawTarget:
        return cls.term(Term(sys.stderr), refresh_rate)

    @classmethod
    def term(cls, term: Term, refresh_rate: int = DEFAULT_REFRESH_RATE) -> ProgressDrawTarget:
        """Draw to a terminal; hidden when it is not attended by a user."""
        return cls(_TermSink(term, RateLimiter(refresh_rate), requires_tty=True))

    @classmethod
    def term_like(cls, term_like: TermLike, refresh_rate: int | None = None) -> ProgressDrawTarget:
        """Draw to any terminal-like object, rate limited only if a rate is given."""
        limiter = None if refresh_rate is None else RateLimiter(refresh_rate)
        return cls(_TermSink(term_like, limiter, requires_tty=False))

    @classmethod
    def hidden(cls) -> ProgressDrawTarget:
        return cls(None)

    @classmethod
    def remote(cls, state: Any, idx: int) -> ProgressDrawTarget:
        """Draw through a shared multi progress state at slot ``idx``."""
        return cls(_Remote(state, idx))

    def is_hidden(self) -> bool:
        kind = self._kind
        if kind is None:
            return True
        if isinstance(kind, _Remote):
            return kind.state.is_hidden()
        return kind.requires_tty and not kind.term.is_term()

    def width(self) -> int:
        kind = self._kind
        if kind is None:
            return 0
        if isinstance(kind, _Remote):
            return kind.state.width()
        return kind.term.width()

    def mark_zombie(self) -> None:
        if isinstance(self._kind, _Remote):
            self._kind.state.mark_zombie(self._kind.idx)

    def drawable(self, force_draw: bool, now: int) -> Drawable | None:
        """Return a drawable if drawing is due now, otherwise ``None``."""
        kind = self._kind
        if kind is None:
            return None
        if isinstance(kind, _Remote):
            return Drawable(remote=kind, force_draw=force_draw, now=now)
        if kind.requires_tty and not kind.term.is_term():
            return None
        if force_draw or kind.rate_limiter is None or kind.rate_limiter.allow(now):
            return Drawable(sink=kind)
        return None

    def disconnect(self, now: int) -> None:
        if isinstance(self._kind, _Remote):
            Drawable(remote=self._kind, force_draw=True, now=now).clear()

    def remote_state(self) -> tuple[Any, int] | None:
        if isinstance(self._kind, _Remote):
            return self._kind.state, self._kind.idx
        return None

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        if isinstance(self._kind, _TermSink):
            self._kind.last_line_count = adjust.apply(self._kind.last_line_count)

    def __repr__(self) -> str:
        return f"ProgressDrawTarget({self._kind!r})"