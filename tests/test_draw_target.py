import io
from contextlib import contextmanager

import pytest

from tallybar.draw_target import (
    MAX_BURST,
    DrawState,
    LineAdjust,
    MultiProgressAlignment,
    ProgressDrawTarget,
    RateLimiter,
    Term,
    TermLike,
)


class FakeTerm(TermLike):
    def __init__(self, width=20, height=10):
        self._width = width
        self._height = height
        self.events = []

    def width(self):
        return self._width

    def height(self):
        return self._height

    def move_cursor_up(self, n):
        self.events.append(("up", n))

    def move_cursor_down(self, n):
        self.events.append(("down", n))

    def clear_line(self):
        self.events.append(("clear",))

    def write_line(self, s):
        self.events.append(("line", s))

    def write_str(self, s):
        self.events.append(("str", s))

    def flush(self):
        self.events.append(("flush",))

    def strings(self):
        return [e[1] for e in self.events if e[0] == "str"]


class FakeMultiState:
    def __init__(self, hidden=False, width=42):
        self.hidden = hidden
        self._width = width
        self.zombies = []
        self.draws = []
        self.states = {}

    def is_hidden(self):
        return self.hidden

    def width(self):
        return self._width

    def mark_zombie(self, idx):
        self.zombies.append(idx)

    @contextmanager
    def draw_state(self, idx):
        yield self.states.setdefault(idx, DrawState(lines=["old"]))

    def draw(self, force_draw, extra_lines, now):
        self.draws.append((force_draw, extra_lines, now))


def test_multi_is_hidden():
    state = FakeMultiState(hidden=True)
    target = ProgressDrawTarget.remote(state, 0)
    assert target.is_hidden() is True
    state.hidden = False
    assert target.is_hidden() is False


def test_hidden_target():
    target = ProgressDrawTarget.hidden()
    assert target.is_hidden() is True
    assert target.width() == 0
    assert target.drawable(True, 0) is None
    assert target.remote_state() is None


def test_term_on_non_tty_is_hidden():
    target = ProgressDrawTarget.term(Term(io.StringIO()), 20)
    assert target.is_hidden() is True
    assert target.drawable(True, 0) is None


def test_term_like_is_not_hidden_and_reports_width():
    fake = FakeTerm(width=33)
    target = ProgressDrawTarget.term_like(fake)
    assert target.is_hidden() is False
    assert target.width() == 33


def test_zero_refresh_rate_rejected():
    with pytest.raises(ValueError):
        ProgressDrawTarget.term(Term(io.StringIO()), 0)


def test_term_buffers_until_flush():
    stream = io.StringIO()
    term = Term(stream)
    term.write_str("x")
    term.write_line("y")
    assert stream.getvalue() == ""
    term.flush()
    assert stream.getvalue() == "xy\n"


def test_term_escape_sequences():
    stream = io.StringIO()
    term = Term(stream)
    term.move_cursor_up(0)
    term.move_cursor_up(2)
    term.move_cursor_down(1)
    term.clear_line()
    term.flush()
    assert stream.getvalue() == "\x1b[2A\x1b[1B\r\x1b[2K"


def test_term_not_a_tty():
    assert Term(io.StringIO()).is_term() is False


def test_rate_limiter_burst_then_block():
    limiter = RateLimiter(1, now=0)
    assert all(limiter.allow(0) for _ in range(MAX_BURST))
    assert limiter.allow(0) is False
    assert limiter.allow(1_000_000_000) is True
    assert limiter.allow(1_000_000_000) is False


def test_rate_limiter_rejects_time_going_backwards():
    limiter = RateLimiter(10, now=5_000_000_000)
    assert limiter.allow(1_000_000_000) is False


def test_rate_limiter_invalid_rate():
    with pytest.raises(ValueError):
        RateLimiter(0, now=0)


def test_line_adjust_saturates():
    assert LineAdjust.keep(5).apply(3) == 0
    assert LineAdjust.clear(2).apply(3) == 5


def test_draw_to_term_basic_sequence():
    fake = FakeTerm(width=20, height=10)
    state = DrawState(lines=["abc", "de"])
    assert state.draw_to_term(fake, 0) == 2
    assert fake.events == [
        ("up", 0),
        ("up", 0),
        ("str", "abc"),
        ("line", ""),
        ("str", "de"),
        ("str", " " * 18),
        ("flush",),
    ]


def test_draw_to_term_counts_wrapped_lines():
    fake = FakeTerm(width=10, height=10)
    state = DrawState(lines=["a" * 25])
    assert state.draw_to_term(fake, 0) == 3


def test_draw_to_term_stops_at_terminal_height():
    fake = FakeTerm(width=10, height=2)
    state = DrawState(lines=["a", "b", "c"])
    assert state.draw_to_term(fake, 0) == 2
    assert "c" not in fake.strings()
    assert fake.strings()[:2] == ["a", "b"]


def test_draw_to_term_orphans_not_counted():
    fake = FakeTerm(width=10, height=1)
    state = DrawState(lines=["log", "bar"], orphan_lines_count=1)
    assert state.draw_to_term(fake, 0) == 1
    assert fake.strings()[:2] == ["log", "bar"]


def test_draw_to_term_clears_previous_lines():
    fake = FakeTerm()
    state = DrawState()
    assert state.draw_to_term(fake, 3) == 0
    assert fake.events[:7] == [
        ("up", 2),
        ("clear",),
        ("down", 1),
        ("clear",),
        ("down", 1),
        ("clear",),
        ("up", 2),
    ]


def test_draw_to_term_move_cursor():
    fake = FakeTerm()
    state = DrawState(lines=["x"], move_cursor=True)
    state.draw_to_term(fake, 2)
    assert fake.events[0] == ("up", 2)
    assert ("clear",) not in fake.events


def test_draw_to_term_bottom_alignment_shift():
    fake = FakeTerm()
    state = DrawState(lines=["x"], alignment=MultiProgressAlignment.BOTTOM)
    assert state.draw_to_term(fake, 3) == 3
    assert fake.events.count(("line", "")) == 2


def test_reset_empties_state():
    state = DrawState(lines=["a"], orphan_lines_count=1)
    state.reset()
    assert state.lines == []
    assert state.orphan_lines_count == 0


def test_drawable_draw_and_clear():
    fake = FakeTerm()
    target = ProgressDrawTarget.term_like(fake)
    drawable = target.drawable(False, 0)
    with drawable.state() as state:
        state.lines.append("hi")
    drawable.draw()
    assert "hi" in fake.strings()

    fake.events.clear()
    target.drawable(False, 0).clear()
    assert ("clear",) in fake.events
    assert "hi" not in fake.strings()


def test_adjust_last_line_count_clears_extra_lines():
    fake = FakeTerm()
    target = ProgressDrawTarget.term_like(fake)
    target.adjust_last_line_count(LineAdjust.clear(2))
    target.drawable(True, 0).draw()
    assert fake.events.count(("clear",)) == 2


def test_drawable_adjust_keep():
    fake = FakeTerm()
    target = ProgressDrawTarget.term_like(fake)
    drawable = target.drawable(True, 0)
    with drawable.state() as state:
        state.lines.extend(["a", "b"])
    drawable.draw()
    fake.events.clear()
    drawable = target.drawable(True, 0)
    drawable.adjust_last_line_count(LineAdjust.keep(2))
    drawable.draw()
    assert ("clear",) not in fake.events


def test_rate_limited_term_like_forced():
    fake = FakeTerm()
    target = ProgressDrawTarget.term_like(fake, 1)
    results = [target.drawable(False, 0) for _ in range(MAX_BURST + 1)]
    assert results[-1] is None
    assert target.drawable(True, 0) is not None and all(r is not None for r in results[:-1])


def test_remote_target_delegates():
    state = FakeMultiState(width=42)
    target = ProgressDrawTarget.remote(state, 3)
    assert target.width() == 42
    assert target.remote_state() == (state, 3)
    target.mark_zombie()
    assert state.zombies == [3]


def test_remote_disconnect_clears_and_redraws():
    state = FakeMultiState()
    target = ProgressDrawTarget.remote(state, 1)
    target.disconnect(99)
    assert state.states[1].lines == []
    assert state.draws == [(True, None, 99)]


def test_remote_drawable_draws_through_state():
    state = FakeMultiState()
    target = ProgressDrawTarget.remote(state, 0)
    drawable = target.drawable(False, 7)
    with drawable.state() as draw_state:
        draw_state.lines.append("bar")
    drawable.draw()
    assert state.states[0].lines == ["bar"]
    assert state.draws == [(False, None, 7)]