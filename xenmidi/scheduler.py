from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union


DEFAULT_VELOCITY = 64

TimeSpec = Union[float, int, str, None]


def resolve_time(value: TimeSpec, now: float) -> float:
    """Resolve a note time to an absolute timestamp in milliseconds.

    - None: `now`
    - "+250": 250 ms after `now`
    - "1234.5": absolute
    - numbers: absolute
    """
    if value is None:
        return float(now)
    if isinstance(value, str):
        s = value.strip()
        if s.startswith("+"):
            return float(now) + float(s[1:])
        return float(s)
    return float(value)


@dataclass(frozen=True)
class Note:
    """A note request for MidiOut.play_notes. Durations are in milliseconds."""

    frequency: float
    duration: float
    time: TimeSpec = None
    raw_attack: int = DEFAULT_VELOCITY
    raw_release: int = DEFAULT_VELOCITY


@dataclass
class ScheduledEvent:
    kind: str  # 'on' | 'off'
    time: float
    note_index: int
    # Index of the paired event in the same event list
    pair: int


def expand_notes(notes: Iterable[Note], now: float) -> List[ScheduledEvent]:
    """Expand notes into on/off events sorted by time.

    Relative times share the single `now` captured for the batch. The sort is
    stable, so simultaneous events keep input order and each note's on comes
    before its own off. `pair` indices refer to positions in the returned list.
    """
    events: List[ScheduledEvent] = []
    for i, note in enumerate(notes):
        if note.duration < 0:
            raise ValueError(f"note {i}: duration must be non-negative, got {note.duration}")
        t = resolve_time(note.time, now)
        events.append(ScheduledEvent(kind="on", time=t, note_index=i, pair=-1))
        events.append(ScheduledEvent(kind="off", time=t + float(note.duration), note_index=i, pair=-1))
    events.sort(key=lambda e: e.time)
    # Re-link pairs after sorting
    on_at: Dict[int, int] = {}
    for idx, ev in enumerate(events):
        if ev.kind == "on":
            on_at[ev.note_index] = idx
    for idx, ev in enumerate(events):
        if ev.kind == "off":
            on_idx = on_at[ev.note_index]
            ev.pair = on_idx
            events[on_idx].pair = idx
    return events


def note_from_dict(d: Dict[str, Any]) -> Note:
    """Build a Note from a JSON object using camelCase keys."""
    return Note(
        frequency=float(d["frequency"]),
        duration=float(d.get("duration", 0.0)),
        time=d.get("time"),
        raw_attack=int(d.get("rawAttack", DEFAULT_VELOCITY)),
        raw_release=int(d.get("rawRelease", DEFAULT_VELOCITY)),
    )


def batch_span(events: List[ScheduledEvent]) -> Optional[float]:
    """Return the time of the last event, or None for an empty batch."""
    if not events:
        return None
    return events[-1].time
