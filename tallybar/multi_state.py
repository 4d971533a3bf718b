"""Shared state behind a multi progress: members, their order and drawing."""

from __future__ import annotations

import functools
import math
import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, TypeVar

from tallybar.draw_target import (
    DrawState,
    LineAdjust,
    MultiProgressAlignment,
    ProgressDrawTarget,
)
from tallybar.textwidth import measure_text_width

_R = TypeVar("_R")


def _locked(method: Callable[..., _R]) -> Callable[..., _R]:
    @functools.wraps(method)
    def wrapper(self: MultiState, *args: object, **kwargs: object) -> _R:
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper


def _real_len(lines: list[str], width: int) -> int:
    """Count the terminal rows the lines take, taking line wrapping into account."""
    total = 0
    for line in lines:
        line_width = measure_text_width(line)
        if width <= 0:
            total += sys.maxsize if line_width else 0
        else:
            total += math.ceil(line_width / width)
    return min(total, sys.maxsize)


def _split_lines(msg: str) -> list[str]:
    """Split a message into lines; an empty message still gives one line."""
    if not msg:
        return [""]
    parts = msg.split("\n")
    if msg.endswith("\n"):
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


class _Where(Enum):
    END = "end"
    INDEX = "index"
    INDEX_FROM_BACK = "index_from_back"
    AFTER = "after"
    BEFORE = "before"


@dataclass(frozen=True)
class InsertLocation:
    """Where a new member goes in the visual order."""

    where: _Where
    value: int = 0

    @classmethod
    def end(cls) -> InsertLocation:
        return cls(_Where.END)

    @classmethod
    def index(cls, pos: int) -> InsertLocation:
        return cls(_Where.INDEX, pos)

    @classmethod
    def index_from_back(cls, pos: int) -> InsertLocation:
        return cls(_Where.INDEX_FROM_BACK, pos)

    @classmethod
    def after(cls, idx: int) -> InsertLocation:
        return cls(_Where.AFTER, idx)

    @classmethod
    def before(cls, idx: int) -> InsertLocation:
        return cls(_Where.BEFORE, idx)


@dataclass
class MultiStateMember:
    """One slot of a multi progress.

    ``draw_state`` is ``None`` until the member first draws, and for free slots.
    """

    draw_state: DrawState | None = None
    is_zombie: bool = False


@dataclass
class MultiState:
    """The members of a multi progress, their order and their draw target."""

    draw_target: ProgressDrawTarget
    members: list[MultiStateMember] = field(default_factory=list)
    free_set: list[int] = field(default_factory=list)
    ordering: list[int] = field(default_factory=list)
    move_cursor: bool = False
    alignment: MultiProgressAlignment = MultiProgressAlignment.TOP
    orphan_lines: list[str] = field(default_factory=list)
    zombie_lines_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __init__(self, draw_target: ProgressDrawTarget) -> None:
        self.draw_target = draw_target
        self.members = []
        self.free_set = []
        self.ordering = []
        self.move_cursor = False
        self.alignment = MultiProgressAlignment.TOP
        self.orphan_lines = []
        self.zombie_lines_count = 0
        self.lock = threading.RLock()

    @_locked
    def mark_zombie(self, index: int) -> None:
        """Mark a member whose bar is gone; reap it now if it is drawn first."""
        member = self.members[index]
        if index != self.ordering[0]:
            member.is_zombie = True
            return

        line_count = len(member.draw_state.lines) if member.draw_state is not None else 0
        self.zombie_lines_count += line_count
        self.draw_target.adjust_last_line_count(LineAdjust.keep(line_count))
        self.remove_idx(index)

    @_locked
    def draw(self, force_draw: bool, extra_lines: list[str] | None, now: int) -> None:
        """Draw all members, with ``extra_lines`` printed above them if given."""
        if extra_lines is not None and not extra_lines:
            raise ValueError("extra_lines must hold at least one line when given")
        width = self.width()

        reap_indices: list[int] = []
        adjust = 0
        for index in self.ordering:
            member = self.members[index]
            if not member.is_zombie:
                break
            line_count = (
                _real_len(member.draw_state.lines, width) if member.draw_state is not None else 0
            )
            self.zombie_lines_count += line_count
            adjust += line_count
            reap_indices.append(index)

        # A println has to appear above everything, so zombie lines are wiped.
        if extra_lines is not None:
            self.draw_target.adjust_last_line_count(LineAdjust.clear(self.zombie_lines_count))
            self.zombie_lines_count = 0

        orphan_lines_count = _real_len(self.orphan_lines, width)
        force_draw = force_draw or orphan_lines_count > 0
        drawable = self.draw_target.drawable(force_draw, now)
        if drawable is None:
            return

        with drawable.state() as draw_state:
            draw_state.orphan_lines_count = orphan_lines_count
            draw_state.alignment = self.alignment
            if extra_lines is not None:
                draw_state.lines.extend(extra_lines)
                draw_state.orphan_lines_count += _real_len(extra_lines, width)
            draw_state.lines.extend(self.orphan_lines)
            self.orphan_lines.clear()
            for index in self.ordering:
                member_state = self.members[index].draw_state
                if member_state is not None:
                    draw_state.lines.extend(member_state.lines)

        try:
            drawable.draw()
        finally:
            for index in reap_indices:
                self.remove_idx(index)
            # Zombie lines were drawn for the last time; keep them on screen.
            if extra_lines is None:
                self.draw_target.adjust_last_line_count(LineAdjust.keep(adjust))

    def println(self, msg: str, now: int) -> None:
        """Print ``msg`` above all members."""
        self.draw(True, _split_lines(msg), now)

    @contextmanager
    def draw_state(self, idx: int) -> Iterator[DrawState]:
        """Yield the draw state of member ``idx``; orphan lines are collected on exit."""
        with self.lock:
            member = self.members[idx]
            if member.draw_state is None:
                member.draw_state = DrawState(move_cursor=self.move_cursor)
            state = member.draw_state
            try:
                yield state
            finally:
                count = state.orphan_lines_count
                self.orphan_lines.extend(state.lines[:count])
                del state.lines[:count]
                state.orphan_lines_count = 0

    def is_hidden(self) -> bool:
        return self.draw_target.is_hidden()

    @_locked
    def suspend(self, func: Callable[[], _R], now: int) -> _R:
        """Clear the display, run ``func``, then draw again."""
        self.clear(now)
        result = func()
        self.draw(True, None, time.monotonic_ns())
        return result

    def width(self) -> int:
        return self.draw_target.width()

    @_locked
    def insert(self, location: InsertLocation) -> int:
        """Add a member at ``location`` and return its slot index."""
        if location.where is _Where.AFTER:
            pos = self.ordering.index(location.value) + 1
        elif location.where is _Where.BEFORE:
            pos = self.ordering.index(location.value)
        elif location.where is _Where.INDEX:
            pos = min(location.value, len(self.ordering))
        elif location.where is _Where.INDEX_FROM_BACK:
            pos = max(len(self.ordering) - location.value, 0)
        else:
            pos = len(self.ordering)

        if self.free_set:
            idx = self.free_set.pop()
            self.members[idx] = MultiStateMember()
        else:
            self.members.append(MultiStateMember())
            idx = len(self.members) - 1

        self.ordering.insert(pos, idx)
        self._check_consistent()
        return idx

    @_locked
    def clear(self, now: int) -> None:
        """Wipe everything drawn, zombie lines included."""
        drawable = self.draw_target.drawable(True, now)
        if drawable is None:
            return
        drawable.adjust_last_line_count(LineAdjust.clear(self.zombie_lines_count))
        self.zombie_lines_count = 0
        drawable.clear()

    @_locked
    def remove_idx(self, idx: int) -> None:
        """Free slot ``idx``; removing a free slot again does nothing."""
        if idx in self.free_set:
            return
        self.members[idx] = MultiStateMember()
        self.free_set.append(idx)
        self.ordering = [x for x in self.ordering if x != idx]
        self._check_consistent()

    def __len__(self) -> int:
        return len(self.members) - len(self.free_set)

    def _check_consistent(self) -> None:
        if len(self) != len(self.ordering):
            raise RuntimeError("Draw state is inconsistent")