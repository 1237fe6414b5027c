from __future__ import annotations

import asyncio
import datetime as dt
import os
from pathlib import Path

import pytest

from cardtrack.monitor import run_monitor, tick_delays, until_stopped
from cardtrack.snapshot import CardSnapshot, RunContext, Snapshot
from cardtrack.source import ScoreFileSource
from cardtrack.store import SnapshotStore
from touhou.th07 import score
from touhou.th07.types import ShotSlots, ShotType, Stage
from touhou.types import Difficulty

T0 = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)


def _snapshot(attempts: int, captures: int, *, seconds: int) -> Snapshot:
    at = T0 + dt.timedelta(seconds=seconds)
    return Snapshot(
        timestamp=at,
        cards=(CardSnapshot(card_id=5, shot_type=ShotType.REIMU_A, timestamp=at, attempts=attempts, captures=captures),),
    )


class _ScriptedSource:
    """Replays a fixed list of readings, then sets the stop event."""

    def __init__(self, initial: Snapshot, polls: list[Snapshot | None], stop: asyncio.Event) -> None:
        self.initial = initial
        self.polls = list(polls)
        self.stop = stop
        self.refreshes = 0

    async def read_snapshot(self) -> Snapshot:
        return self.initial

    async def refresh(self) -> Snapshot | None:
        self.refreshes += 1
        if not self.polls:
            self.stop.set()
            await asyncio.sleep(3600)
        return self.polls.pop(0)


class _FailingSource(_ScriptedSource):
    async def refresh(self) -> Snapshot | None:
        raise OSError("score file vanished")


def test_monitor_reports_and_stores_each_update() -> None:
    lines: list[str] = []

    async def scenario() -> Snapshot | None:
        stop = asyncio.Event()
        source = _ScriptedSource(
            _snapshot(10, 2, seconds=0),
            [None, _snapshot(10, 2, seconds=2), _snapshot(12, 3, seconds=3)],
            stop,
        )
        with SnapshotStore() as store:
            last = await run_monitor(source, store, stop=stop, interval_s=0, echo=lines.append)
            assert store.count() == 2
            assert [row.attempts for row in store.history(5, ShotType.REIMU_A)] == [10, 12]
        assert source.refreshes == 4
        return last

    last = asyncio.run(scenario())

    assert last is not None
    assert last.get_card(ShotType.REIMU_A, 5).attempts == 12
    assert len(lines) == 4
    assert lines[0].endswith("(20.0 %)")
    assert lines[2].endswith("ReimuA Stage 1 Easy:")
    assert lines[3].endswith(" - CAPTURE")


def test_monitor_stops_before_initial_read() -> None:
    class _Slow(_ScriptedSource):
        async def read_snapshot(self) -> Snapshot:
            await asyncio.sleep(3600)
            return self.initial

    async def scenario() -> Snapshot | None:
        stop = asyncio.Event()
        stop.set()
        with SnapshotStore() as store:
            result = await run_monitor(_Slow(_snapshot(1, 0, seconds=0), [], stop), store, stop=stop, echo=lambda _line: None)
            assert store.count() == 0
        return result

    assert asyncio.run(scenario()) is None


def test_monitor_propagates_source_errors() -> None:
    async def scenario() -> None:
        stop = asyncio.Event()
        with SnapshotStore() as store:
            await run_monitor(
                _FailingSource(_snapshot(1, 0, seconds=0), [], stop),
                store,
                stop=stop,
                interval_s=0,
                echo=lambda _line: None,
            )

    with pytest.raises(OSError, match="vanished"):
        asyncio.run(scenario())


def test_tick_delays_subtract_time_spent_between_ticks() -> None:
    readings = iter([100.0, 100.0, 101.3, 102.0, 104.5, 105.2])

    delays = tick_delays(1.0, lambda: next(readings))

    assert next(delays) == pytest.approx(1.0)
    assert next(delays) == pytest.approx(0.7)
    assert next(delays) == pytest.approx(1.0)
    assert next(delays) == 0.0
    assert next(delays) == 0.0


def test_until_stopped_returns_result_when_work_wins() -> None:
    async def scenario() -> tuple[bool, int | None]:
        async def work() -> int:
            return 7

        return await until_stopped(work(), asyncio.Event())

    assert asyncio.run(scenario()) == (False, 7)


def test_score_file_source_skips_unchanged_file(tmp_path: Path) -> None:
    path = tmp_path / "score.dat"
    card = score.SpellCardData(
        card_id=5,
        raw_card_name=b"\x00" * 0x30,
        max_bonuses=ShotSlots([0] * 7),
        attempts=ShotSlots([3, 0, 0, 0, 0, 0, 3]),
        captures=ShotSlots([1, 0, 0, 0, 0, 0, 1]),
    )
    path.write_bytes(score.build_score_file([score.HeaderSegment(), card]))

    async def scenario() -> tuple[Snapshot, Snapshot | None]:
        source = ScoreFileSource(path, clock=lambda: T0)
        first = await source.read_snapshot()
        second = await source.refresh()
        return first, second

    first, second = asyncio.run(scenario())

    assert second is None
    reading = first.get_card(ShotType.REIMU_A, 5)
    assert reading is not None
    assert (reading.attempts, reading.captures, reading.timestamp) == (3, 1, T0)
    assert len(first.cards) == 6


def test_score_file_source_tags_reading_with_practiced_run(tmp_path: Path) -> None:
    path = tmp_path / "score.dat"

    def write(attempts: int, practices: int) -> None:
        card = score.SpellCardData(
            card_id=5,
            raw_card_name=b"\x00" * 0x30,
            max_bonuses=ShotSlots([0] * 7),
            attempts=ShotSlots([0, 0, attempts, 0, 0, 0, attempts]),
            captures=ShotSlots([0] * 7),
        )
        practice = score.PracticeData(
            attempts=practices,
            high_score=0,
            shot_type=ShotType.MARISA_A,
            difficulty=Difficulty.EASY,
            stage=Stage.ONE,
        )
        path.write_bytes(score.build_score_file([score.HeaderSegment(), card, practice]))

    write(3, 7)

    async def scenario() -> tuple[Snapshot, Snapshot | None]:
        source = ScoreFileSource(path, clock=lambda: T0)
        first = await source.read_snapshot()
        write(4, 8)
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
        second = await source.refresh()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.context is None
    assert second is not None
    assert second.context == RunContext(shot_type=ShotType.MARISA_A, difficulty=Difficulty.EASY, stage=Stage.ONE)
    assert str(second.context) == "MarisaA Stage 1 Easy"
    assert second.get_card(ShotType.MARISA_A, 5).attempts == 4
