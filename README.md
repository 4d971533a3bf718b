# tallybar

Building blocks for terminal progress reporting:

- **Human-readable formatting** of durations, byte sizes and counts
  (`tallybar.format`).
- **Text width measurement** that ignores ANSI escape codes and counts
  wide characters as two columns (`tallybar.textwidth`).
- **Draw targets** that paint lines to a terminal at a bounded refresh
  rate, redrawing in place and hiding themselves when output is not a
  terminal (`tallybar.draw_target`).
- **Multi-line layout** that keeps several members in a stable visual
  order and prints log lines above them (`tallybar.multi`,
  `tallybar.multi_state`).

## Installation

```
pip install tallybar
```

## Formatting

```python
from datetime import timedelta
from tallybar.format import (
    HumanBytes, DecimalBytes, BinaryBytes, HumanCount, HumanFloatCount,
    HumanDuration, FormattedDuration,
)

str(HumanBytes(3 * 1024 * 1024))          # "3.00 MiB"
str(DecimalBytes(3_000_000))              # "3.00 MB"
str(HumanCount(33857009))                 # "33,857,009"
str(HumanFloatCount(33857009.123456))     # "33,857,009.1235"
str(HumanDuration(timedelta(seconds=8)))  # "8 seconds"
f"{HumanDuration(timedelta(minutes=2)):#}"  # "2m"
str(FormattedDuration(timedelta(hours=26, seconds=5)))  # "1d 02:00:05"
```

`HumanDuration` rounds rather than truncates, and avoids "1 unit" for
anything above seconds: 89 seconds stays "89 seconds" instead of
becoming "1 minute". Negative durations and negative byte counts or
integer counts raise `ValueError`.

## Measuring text

```python
from tallybar.textwidth import strip_ansi, measure_text_width

strip_ansi("\x1b[32mok\x1b[0m")          # "ok"
measure_text_width("\x1b[1m日本\x1b[0m")  # 4
```

## Draw targets

`tallybar.draw_target.ProgressDrawTarget` decides where lines go:

```python
from tallybar.draw_target import ProgressDrawTarget

target = ProgressDrawTarget.stderr()       # at most 20 redraws per second
slow = ProgressDrawTarget.stdout(5)        # at most 5 redraws per second
quiet = ProgressDrawTarget.hidden()        # draws nothing
```

A target built with `stdout`, `stderr` or `term` is hidden when its
stream is not a terminal. Any object implementing the `TermLike`
interface (`width`, `height`, `move_cursor_up`, `move_cursor_down`,
`clear_line`, `write_line`, `write_str`, `flush`) can be wrapped with
`ProgressDrawTarget.term_like(obj)`. Without a refresh rate it draws on
every call; this makes it easy to render into an in-memory terminal in
tests.

To draw, ask the target for a `Drawable`, fill in its lines and draw:

```python
import time

drawable = target.drawable(True, time.monotonic_ns())
if drawable is not None:
    with drawable.state() as state:
        state.lines.append("[#####     ] 50/100")
    drawable.draw()
```

`drawable()` returns `None` when the target is hidden or when the rate
limiter says it is too soon to redraw; passing `True` forces a draw.
Each redraw replaces the lines painted before.

## Multiple lines

```python
from tallybar.draw_target import ProgressDrawTarget, MultiProgressAlignment
from tallybar.multi import MultiProgress

multi = MultiProgress(ProgressDrawTarget.stderr())
multi.set_alignment(MultiProgressAlignment.BOTTOM)

first = multi.add()
second = multi.insert_after(first)
multi.println("starting!")
multi.remove(second)
multi.clear()
```

`add`, `insert`, `insert_from_back`, `insert_before` and `insert_after`
reserve a slot in the visual order and return a remote
`ProgressDrawTarget` for it; drawing through that target redraws all
members together. `insert` past the end appends; `insert_from_back` past
the start prepends. Freed slots are reused. `remove` ignores targets that
are not remote and raises `ValueError` for a target of another
`MultiProgress`; `insert_before` and `insert_after` raise `ValueError`
for a target that is not a current member.

`println(msg)` prints lines above all members, `suspend(func)` clears the
display, runs `func`, redraws and returns what `func` returned, and
`set_move_cursor(True)` moves the cursor instead of clearing lines. A
member whose work is done can call `target.mark_zombie()`: its last lines
stay on screen and its slot is released.

## What this package does not do

There is no progress bar or spinner object, no template or style
language, and no wrapping of iterators or streams. The package supplies
the formatting, the measuring and the painting; turning a position and
a length into a line of text is left to the caller.

## Running the tests

```
pip install -e .[test]
pytest
```