from __future__ import annotations

import datetime as dt
from typing import Iterator

from .snapshot import CardSnapshot, Snapshot
from .stats import RECENT_WINDOW, RecentPerformance, SnapshotHistory, recent_performance
from .updates import AttemptEvent, CardAttemptInfo, Update

TITLE_WIDTH = 85


def _percent(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100.0


def format_card_stats(
    card: CardSnapshot,
    *,
    recent: RecentPerformance | None = None,
    attempt: CardAttemptInfo | None = None,
) -> str:
    title = f"#{card.card_id:03d} {card.card_name}"
    line = (
        f"{title:^{TITLE_WIDTH}} [{str(card.shot_type):<8}]: "
        f"{card.captures:>4} / {card.attempts:<4} ({_percent(card.captures, card.attempts):^5.1f}%"
    )
    if recent is not None:
        line += f", recent {recent.captures} / {recent.attempts} = {_percent(recent.captures, recent.attempts):^5.1f}%"
    line += ")"
    if attempt is not None:
        line += " - CAPTURE" if attempt.is_capture else " - MISS"
    return line


def format_timestamp(timestamp: dt.datetime) -> str:
    return timestamp.isoformat(sep=" ", timespec="seconds")


def format_event_header(event: AttemptEvent) -> str:
    line = f"[{format_timestamp(event.timestamp)}] {event.shot_type} {event.stage} {event.difficulty}"
    if event.practice_number is not None:
        line += f" Practice #{event.practice_number}"
    return line + ":"


def snapshot_lines(
    snapshot: Snapshot,
    history: SnapshotHistory,
    *,
    window: dt.timedelta = RECENT_WINDOW,
) -> Iterator[str]:
    for card in snapshot.iter_cards():
        yield format_card_stats(card, recent=recent_performance(history, card, window=window))


def update_lines(
    update: Update,
    history: SnapshotHistory,
    *,
    window: dt.timedelta = RECENT_WINDOW,
) -> Iterator[str]:
    for event in update.events:
        yield ""
        yield format_event_header(event)
        for card_id, attempt in event.iter_attempts():
            card = update.snapshot.get_card(event.shot_type, card_id)
            if card is None:
                raise KeyError(f"card {card_id} ({event.shot_type}) missing from update snapshot")
            yield format_card_stats(card, recent=recent_performance(history, card, window=window), attempt=attempt)


__all__ = [
    "TITLE_WIDTH",
    "format_card_stats",
    "format_event_header",
    "format_timestamp",
    "snapshot_lines",
    "update_lines",
]
