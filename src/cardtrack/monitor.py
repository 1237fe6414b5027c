from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import signal
from typing import Awaitable, Callable, Iterator, TypeVar

from .debug_log import debug_log
from .report import snapshot_lines, update_lines
from .snapshot import Snapshot
from .source import SnapshotSource
from .stats import RECENT_WINDOW
from .store import SnapshotStore
from .updates import UpdateTracker

_T = TypeVar("_T")

DEFAULT_INTERVAL_S = 1.0


async def _discard(task: asyncio.Future[object]) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def until_stopped(awaitable: Awaitable[_T], stop: asyncio.Event) -> tuple[bool, _T | None]:
    """Race `awaitable` against `stop`; returns `(stopped, result)`.

    The awaitable is cancelled when the stop event wins. Its exceptions propagate.
    """
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(stop.wait())
    done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    if work in done:
        await _discard(waiter)
        return False, work.result()
    await _discard(work)
    return True, None


def tick_delays(interval_s: float, clock: Callable[[], float]) -> Iterator[float]:
    """Sleep durations that keep ticks on a fixed cadence measured from the first call.

    Time spent between ticks is taken out of the next sleep. A tick that is already
    late fires immediately.
    """
    next_at = clock()
    while True:
        next_at += interval_s
        yield max(0.0, next_at - clock())


def install_stop_signals(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handlers; Ctrl-C still raises KeyboardInterrupt.
            continue


async def run_monitor(
    source: SnapshotSource,
    store: SnapshotStore,
    *,
    stop: asyncio.Event,
    interval_s: float = DEFAULT_INTERVAL_S,
    window: dt.timedelta = RECENT_WINDOW,
    echo: Callable[[str], None] = print,
) -> Snapshot | None:
    """Poll `source` until `stop` is set, reporting and storing every change.

    Returns the last stored snapshot, or `None` when stopped before the first read.
    """
    stopped, initial = await until_stopped(source.read_snapshot(), stop)
    if stopped or initial is None:
        debug_log("stop", phase="initial")
        return None

    for line in snapshot_lines(initial, store, window=window):
        echo(line)
    await asyncio.to_thread(store.insert, initial)

    tracker = UpdateTracker(initial)
    delays = tick_delays(float(interval_s), asyncio.get_running_loop().time)

    async def tick() -> Snapshot | None:
        await asyncio.sleep(next(delays))
        return await source.refresh()

    ticks = 0
    while not stop.is_set():
        stopped, snapshot = await until_stopped(tick(), stop)
        if stopped:
            break
        ticks += 1
        if snapshot is None:
            continue
        update = tracker.update(snapshot)
        if update is None:
            continue
        for line in update_lines(update, store, window=window):
            echo(line)
        await asyncio.to_thread(store.insert, update.snapshot)

    debug_log("stop", phase="polling", ticks=ticks)
    return tracker.current


__all__ = [
    "DEFAULT_INTERVAL_S",
    "install_stop_signals",
    "run_monitor",
    "tick_delays",
    "until_stopped",
]
