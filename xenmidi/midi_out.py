from __future__ import annotations

import heapq
import itertools
import threading
import time
from typing import Any, List, Optional, Tuple


def _now_ms() -> float:
    return time.monotonic() * 1000.0


def bend_to_pitchwheel(value: float) -> int:
    """Map a normalized bend in [-1, 1] to mido's signed 14-bit pitchwheel range."""
    v = max(-1.0, min(1.0, float(value)))
    raw = int(round((v + 1.0) / 2.0 * 16383))
    return max(-8192, min(8191, raw - 8192))


class CoreOutput:
    """Abstract output port interface used by MidiOut.

    Channels are 1-indexed. `time` is an absolute timestamp in milliseconds
    on the same clock as MidiOut.now, or None for immediate delivery.
    """

    def pitch_bend_range(self, channel: int, semitones: int, cents: int = 0) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def pitch_bend(self, channel: int, value: float, time: Optional[float] = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def note_on(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def note_off(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def clear(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def all_notes_off(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def panic(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class VirtualOutput(CoreOutput):
    """A minimal output capturing events for tests and demos.

    Records tuples like (type, channel, args...). Types: 'bend_range', 'bend',
    'on', 'off', 'clear', 'all_off', 'panic'.
    """

    def __init__(self) -> None:
        self.events: List[Tuple[Any, ...]] = []

    def pitch_bend_range(self, channel: int, semitones: int, cents: int = 0) -> None:
        self.events.append(("bend_range", channel, semitones, cents))

    def pitch_bend(self, channel: int, value: float, time: Optional[float] = None) -> None:
        self.events.append(("bend", channel, value, time))

    def note_on(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:
        self.events.append(("on", channel, note, velocity, time))

    def note_off(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:
        self.events.append(("off", channel, note, velocity, time))

    def clear(self) -> None:
        self.events.append(("clear", -1))

    def all_notes_off(self) -> None:
        self.events.append(("all_off", -1))

    def panic(self) -> None:
        self.events.append(("panic", -1))

    def of_type(self, kind: str) -> List[Tuple[Any, ...]]:
        return [e for e in self.events if e[0] == kind]


class MidoOutput(CoreOutput):
    """Output adapter over a mido output port.

    Messages stamped in the future are held in a queue and released by
    flush_due(); everything else goes straight to the port.
    """

    def __init__(self, out_port, now=None) -> None:
        self.out = out_port
        self.now = now if now is not None else _now_ms
        self._pending: List[Tuple[float, int, Any]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def _emit(self, msg, time: Optional[float] = None) -> None:
        now = self.now()
        with self._lock:
            if time is None or time <= now:
                # Overdue queued messages must go out first
                if not self._pending or self._pending[0][0] > now:
                    self.out.send(msg)
                    return
                time = now if time is None else time
            heapq.heappush(self._pending, (float(time), next(self._seq), msg))

    def flush_due(self, now: Optional[float] = None) -> int:
        """Send every queued message stamped at or before `now`. Returns the count sent."""
        t = self.now() if now is None else now
        sent = 0
        with self._lock:
            while self._pending and self._pending[0][0] <= t:
                _ts, _seq, msg = heapq.heappop(self._pending)
                self.out.send(msg)
                sent += 1
        return sent

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pitch_bend_range(self, channel: int, semitones: int, cents: int = 0) -> None:
        import mido

        ch = int(channel) - 1
        # RPN 0 (pitch bend sensitivity), data entry MSB/LSB, then RPN null
        for control, value in ((101, 0), (100, 0), (6, int(semitones)), (38, int(cents)), (101, 127), (100, 127)):
            self.out.send(mido.Message("control_change", control=control, value=value, channel=ch))

    def pitch_bend(self, channel: int, value: float, time: Optional[float] = None) -> None:
        import mido

        self._emit(mido.Message("pitchwheel", pitch=bend_to_pitchwheel(value), channel=int(channel) - 1), time)

    def note_on(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:
        import mido

        self._emit(mido.Message("note_on", note=int(note), velocity=int(velocity), channel=int(channel) - 1), time)

    def note_off(self, channel: int, note: int, velocity: int, time: Optional[float] = None) -> None:
        import mido

        self._emit(mido.Message("note_off", note=int(note), velocity=int(velocity), channel=int(channel) - 1), time)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()

    def all_notes_off(self) -> None:
        import mido

        for ch in range(16):
            self.out.send(mido.Message("control_change", control=123, value=0, channel=ch))

    def panic(self) -> None:
        import mido

        self.clear()
        # Send All Notes Off across all channels
        for ch in range(16):
            # Sustain off
            self.out.send(mido.Message("control_change", control=64, value=0, channel=ch))
            # All Sound Off (120) then All Notes Off (123)
            self.out.send(mido.Message("control_change", control=120, value=0, channel=ch))
            self.out.send(mido.Message("control_change", control=123, value=0, channel=ch))
            # Center the pitch wheel so retuned channels don't linger bent
            self.out.send(mido.Message("pitchwheel", pitch=0, channel=ch))


def _dummy_out():
    class _DummyOut:
        def send(self, *_args, **_kwargs):
            pass

        def close(self):
            pass
    return _DummyOut()


def _dummy_in():
    class _DummyIn:
        def close(self):
            pass
    return _DummyIn()


def open_mido_output(name_filter: Optional[str] = None):
    """Open a Mido output port with safe fallbacks.

    - If mido/rtmidi are unavailable or the system MIDI stack is inaccessible,
      return a dummy object exposing `.send()`.
    - If a specific port is requested but not found, also fall back to dummy
      rather than crashing in headless CI environments.
    """
    try:
        import mido
    except Exception:
        return _dummy_out()

    try:
        names = mido.get_output_names()
    except Exception:
        # Accessing system MIDI may raise in sandboxed environments
        return _dummy_out()
    if name_filter:
        names = [n for n in names if name_filter in n]
    if not names:
        return _dummy_out()
    try:
        return mido.open_output(names[0])
    except Exception:
        return _dummy_out()


def open_mido_input(name_filter: Optional[str] = None, callback=None):
    """Open a Mido input port with safe fallbacks.

    Returns a dummy object with `.close()` when system MIDI is unavailable or
    access fails (e.g., CI, sandboxed runners).
    """
    try:
        import mido
    except Exception:
        return _dummy_in()

    try:
        names = mido.get_input_names()
    except Exception:
        return _dummy_in()
    if name_filter:
        names = [n for n in names if name_filter in n]
    if not names:
        return _dummy_in()
    try:
        return mido.open_input(names[0], callback=callback)
    except Exception:
        return _dummy_in()
