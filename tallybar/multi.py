"""Several progress displays drawn together on one target."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from tallybar.draw_target import MultiProgressAlignment, ProgressDrawTarget
from tallybar.multi_state import InsertLocation, MultiState

_R = TypeVar("_R")


class MultiProgress:
    """Manages several progress displays, possibly updated from different threads.

    Each member is represented by a remote draw target that paints through
    the shared state. Copies of a ``MultiProgress`` share that state.
    """

    def __init__(self, draw_target: ProgressDrawTarget | None = None) -> None:
        if draw_target is None:
            draw_target = ProgressDrawTarget.stderr()
        self.state = MultiState(draw_target)

    def set_draw_target(self, target: ProgressDrawTarget) -> None:
        """Replace the draw target, clearing what the old one showed."""
        with self.state.lock:
            self.state.draw_target.disconnect(time.monotonic_ns())
            self.state.draw_target = target

    def set_move_cursor(self, move_cursor: bool) -> None:
        """Move the cursor instead of clearing lines where possible."""
        with self.state.lock:
            self.state.move_cursor = move_cursor

    def set_alignment(self, alignment: MultiProgressAlignment) -> None:
        with self.state.lock:
            self.state.alignment = alignment

    def add(self) -> ProgressDrawTarget:
        """Add a member at the end and return its draw target."""
        return self._internalize(InsertLocation.end())

    def insert(self, index: int) -> ProgressDrawTarget:
        """Add a member at visual position ``index``, or at the end if beyond it."""
        return self._internalize(InsertLocation.index(index))

    def insert_from_back(self, index: int) -> ProgressDrawTarget:
        """Add a member ``index`` positions from the end, or at the start if beyond it."""
        return self._internalize(InsertLocation.index_from_back(index))

    def insert_before(self, before: ProgressDrawTarget) -> ProgressDrawTarget:
        """Add a member directly before an existing one."""
        return self._internalize(InsertLocation.before(self._index_of(before)))

    def insert_after(self, after: ProgressDrawTarget) -> ProgressDrawTarget:
        """Add a member directly after an existing one."""
        return self._internalize(InsertLocation.after(self._index_of(after)))

    def remove(self, target: ProgressDrawTarget) -> None:
        """Remove a member; targets that are not remote are ignored.

        Raises ``ValueError`` if the target belongs to another multi progress.
        """
        remote = target.remote_state()
        if remote is None:
            return
        state, idx = remote
        if state is not self.state:
            raise ValueError("draw target belongs to a different multi progress")
        self.state.remove_idx(idx)

    def println(self, msg: str) -> None:
        """Print a line above all members; nothing happens on a hidden target."""
        self.state.println(msg, time.monotonic_ns())

    def suspend(self, func: Callable[[], _R]) -> _R:
        """Hide everything, run ``func``, draw again and return its result."""
        return self.state.suspend(func, time.monotonic_ns())

    def clear(self) -> None:
        self.state.clear(time.monotonic_ns())

    def is_hidden(self) -> bool:
        return self.state.is_hidden()

    def _internalize(self, location: InsertLocation) -> ProgressDrawTarget:
        idx = self.state.insert(location)
        return ProgressDrawTarget.remote(self.state, idx)

    def _index_of(self, target: ProgressDrawTarget) -> int:
        remote = target.remote_state()
        if remote is None or remote[0] is not self.state:
            raise ValueError("draw target is not a member of this multi progress")
        idx = remote[1]
        if idx not in self.state.ordering:
            raise ValueError("draw target has been removed from this multi progress")
        return idx

    def __repr__(self) -> str:
        return f"MultiProgress({self.state!r})"