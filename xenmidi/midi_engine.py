from __future__ import annotations

import math
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from xenmidi.midi_out import CoreOutput
from xenmidi.pitch import frequency_to_midi
from xenmidi.scheduler import DEFAULT_VELOCITY, Note, ScheduledEvent, TimeSpec, expand_notes, resolve_time
from xenmidi.voices import Voice, VoiceAllocator


# Pitch bend range measured in semitones (+-)
BEND_RANGE_IN_SEMITONES = 2

Resolver = Callable[[float], Tuple[int, float]]


class CausalOrderViolation(ValueError):
    """Raised when an event is stamped earlier than the last one accepted by an output."""


def _nolog(_msg: str) -> None:
    return None


def _now_ms() -> float:
    return time.monotonic() * 1000.0


def _velocity(raw: int) -> int:
    return min(127, max(0, int(raw)))


class NoteOff:
    """Handle returned by MidiOut.send_note_on. Calling it ends the note.

    Call at most once; a second call sends a duplicate note off.
    """

    __slots__ = ("out", "note_number", "voice")

    def __init__(self, out: "MidiOut", note_number: int, voice: Voice) -> None:
        self.out = out
        self.note_number = note_number
        self.voice = voice

    @property
    def channel(self) -> int:
        return self.voice.channel

    def __call__(self, raw_release: int = DEFAULT_VELOCITY, time: TimeSpec = None) -> None:
        self.out.send_note_off(self, raw_release, time)

    def __repr__(self) -> str:
        return f"NoteOff(note={self.note_number}, channel={self.voice.channel})"


class _EmptyNoteOff:
    """No-op handle for unplayable notes and dummy outputs."""

    channel = None
    note_number = None

    def __call__(self, raw_release: int = DEFAULT_VELOCITY, time: TimeSpec = None) -> None:
        return None

    def __repr__(self) -> str:
        return "EMPTY_NOTE_OFF"


EMPTY_NOTE_OFF = _EmptyNoteOff()


class MidiOut:
    """Multichannel pitch-bend wrapper around an output port.

    Each channel carries one pitch bend at a time, so the number of channels
    is the maximum microtonal polyphony. Notes sharing a cents offset share a
    channel. All sends through one instance must be in non-decreasing time.
    """

    def __init__(
        self,
        output: Optional[CoreOutput],
        channels: Iterable[int],
        log: Optional[Callable[[str], None]] = None,
        bend_range: int = BEND_RANGE_IN_SEMITONES,
        now: Optional[Callable[[], float]] = None,
        resolver: Resolver = frequency_to_midi,
    ) -> None:
        self.output = output
        self.log: Callable[[str], None] = log if log is not None else _nolog
        self.allocator = VoiceAllocator(channels, log=self.log)
        self.channels: Tuple[int, ...] = self.allocator.channels
        if isinstance(bend_range, bool) or not isinstance(bend_range, int) or bend_range <= 0:
            raise ValueError(f"bend_range must be a positive whole number of semitones, got {bend_range!r}")
        self.bend_range = bend_range
        self.now: Callable[[], float] = now if now is not None else _now_ms
        self.resolver = resolver
        self.last_event_time: float = -math.inf
        self.metrics: Dict[str, int] = {
            "msgs_note_on": 0,
            "msgs_note_off": 0,
            "unplayable": 0,
        }
        self._send_pitch_bend_range()

    @property
    def voices(self) -> List[Voice]:
        return self.allocator.voices

    def _send_pitch_bend_range(self) -> None:
        if self.output is None:
            return
        for channel in self.channels:
            self.output.pitch_bend_range(channel, self.bend_range, 0)

    def _check_time(self, t: float) -> None:
        if t < self.last_event_time:
            raise CausalOrderViolation(
                f"event at {t} precedes last accepted event at {self.last_event_time}"
            )

    def _dummy(self) -> bool:
        return self.output is None or not self.channels

    def send_note_on(self, frequency: float, raw_attack: int = DEFAULT_VELOCITY, time: TimeSpec = None) -> NoteOff:
        """Send a pitch bend and a note on in one of the available channels.

        Returns a handle that sends the matching note off on the same channel.
        """
        t = resolve_time(time, self.now())
        self._check_time(t)
        if self._dummy():
            return EMPTY_NOTE_OFF
        if not math.isfinite(frequency) or frequency <= 0:
            self.metrics["unplayable"] += 1
            return EMPTY_NOTE_OFF
        note_number, cents_offset = self.resolver(frequency)
        if note_number < 0 or note_number >= 128:
            self.metrics["unplayable"] += 1
            return EMPTY_NOTE_OFF
        raw_attack = _velocity(raw_attack)
        voice = self.allocator.select_voice(cents_offset)
        self.log(
            f"Sending note on {note_number} at velocity {raw_attack / 127} on channel {voice.channel} "
            f"with bend {cents_offset} resulting from frequency {frequency}"
        )
        bend_range_cents = self.bend_range * 100
        self.output.pitch_bend(voice.channel, cents_offset / bend_range_cents, t)
        self.output.note_on(voice.channel, note_number, raw_attack, t)
        self.metrics["msgs_note_on"] += 1
        self.last_event_time = t
        return NoteOff(self, note_number, voice)

    def send_note_off(self, handle: NoteOff, raw_release: int = DEFAULT_VELOCITY, time: TimeSpec = None) -> None:
        t = resolve_time(time, self.now())
        self._check_time(t)
        raw_release = _velocity(raw_release)
        voice = handle.voice
        self.log(
            f"Sending note off {handle.note_number} at velocity {raw_release / 127} on channel {voice.channel}"
        )
        self.allocator.expire(voice)
        self.output.note_off(voice.channel, handle.note_number, raw_release, t)
        self.metrics["msgs_note_off"] += 1
        self.last_event_time = t

    def play_notes(self, notes: Iterable[Note]) -> List[ScheduledEvent]:
        """Schedule a batch of notes in time order through the voice allocator.

        Channels of notes in the batch stay reserved until their note offs.
        If the batch fails part way, notes already started are released at the
        last accepted time before the error propagates. Returns the expanded
        events.
        """
        notes = list(notes)
        events = expand_notes(notes, self.now())
        handles: List[Optional[NoteOff]] = [None] * len(events)
        try:
            for idx, ev in enumerate(events):
                note = notes[ev.note_index]
                if ev.kind == "on":
                    handles[ev.pair] = self.send_note_on(note.frequency, note.raw_attack, ev.time)
                else:
                    handle = handles[idx]
                    if handle is None:
                        raise RuntimeError(f"note off for note {ev.note_index} fired before its note on")
                    handles[idx] = None
                    handle(note.raw_release, ev.time)
        except Exception:
            for idx, handle in enumerate(handles):
                if handle is not None:
                    handle(notes[events[idx].note_index].raw_release, self.last_event_time)
            raise
        return events

    def clear(self) -> None:
        """Drop pending scheduled output and silence every channel."""
        if self.output is not None:
            self.output.clear()
            self.output.all_notes_off()
        self.allocator.reset()
        self.last_event_time = self.now()

    def get_metrics(self) -> Dict[str, int]:
        m = dict(self.metrics)
        m.update(self.allocator.metrics)
        return m
