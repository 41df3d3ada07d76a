from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from xenmidi.voices import normalize_channels


# Release velocity used when deactivate() force-fires pending note offs
DEACTIVATE_RELEASE = 80


@dataclass(frozen=True)
class NoteInfo:
    number: int
    attack: float
    raw_attack: int
    release: float
    raw_release: int


@dataclass(frozen=True)
class NoteMessageEvent:
    """A note on/off notification. `channel` is 1-indexed."""

    type: str  # 'noteon' | 'noteoff'
    channel: int
    note: NoteInfo


Listener = Callable[[NoteMessageEvent], None]

# (note_number, raw_attack, channel) -> note off callable taking raw_release
NoteOnCallback = Callable[[int, int, int], Callable[[int], None]]


def event_from_message(msg) -> Optional[NoteMessageEvent]:
    """Convert a mido note message to a NoteMessageEvent.

    Note on with velocity 0 is a note off. Other message types return None.
    """
    mtype = getattr(msg, "type", None)
    if mtype not in ("note_on", "note_off"):
        return None
    velocity = int(msg.velocity)
    channel = int(msg.channel) + 1
    if mtype == "note_on" and velocity > 0:
        note = NoteInfo(number=int(msg.note), attack=velocity / 127, raw_attack=velocity, release=0.0, raw_release=0)
        return NoteMessageEvent(type="noteon", channel=channel, note=note)
    note = NoteInfo(number=int(msg.note), attack=0.0, raw_attack=0, release=velocity / 127, raw_release=velocity)
    return NoteMessageEvent(type="noteoff", channel=channel, note=note)


class InputPort:
    """Listener registry in front of a mido input.

    Pass `dispatch` as the mido input callback, or `feed` raw bytes directly.
    """

    def __init__(self, name: str = "virtual") -> None:
        self.name = name
        self._listeners: Dict[str, List[Listener]] = {"noteon": [], "noteoff": []}

    def add_listener(self, event_name: str, handler: Listener) -> None:
        if event_name not in self._listeners:
            raise ValueError(f"unsupported event: {event_name}")
        self._listeners[event_name].append(handler)

    def remove_listener(self, event_name: str, handler: Listener) -> None:
        handlers = self._listeners.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_listener(self, event_name: str, handler: Listener) -> bool:
        return handler in self._listeners.get(event_name, [])

    def dispatch(self, msg) -> None:
        event = event_from_message(msg)
        if event is None:
            return
        for handler in list(self._listeners[event.type]):
            handler(event)

    def feed(self, data: Sequence[int]) -> None:
        import mido

        self.dispatch(mido.Message.from_bytes(list(data)))


class MidiIn:
    """Tracks note ons from an input and routes note offs to the right handle.

    Notes are identified by note number and channel, so the same key held on
    two channels produces two independent notes.
    """

    def __init__(self, callback: NoteOnCallback, channels: Iterable[int], log: Optional[Callable[[str], None]] = None) -> None:
        self.callback = callback
        self.channels = normalize_channels(channels)
        self.log: Callable[[str], None] = log if log is not None else (lambda _msg: None)
        self._note_offs: Dict[int, Callable[[int], None]] = {}

    @staticmethod
    def _key(note_number: int, channel: int) -> int:
        return note_number + 128 * channel

    def listen(self, port: InputPort) -> None:
        port.add_listener("noteon", self._note_on)
        port.add_listener("noteoff", self._note_off)

    def unlisten(self, port: InputPort) -> None:
        port.remove_listener("noteon", self._note_on)
        port.remove_listener("noteoff", self._note_off)

    def pending_count(self) -> int:
        return len(self._note_offs)

    def _note_on(self, event: NoteMessageEvent) -> None:
        if event.channel not in self.channels:
            return
        note = event.note
        self.log(f"Midi note on {note.number} at velocity {note.attack}")
        note_off = self.callback(note.number, note.raw_attack, event.channel)
        self._note_offs[self._key(note.number, event.channel)] = note_off

    def _note_off(self, event: NoteMessageEvent) -> None:
        if event.channel not in self.channels:
            return
        note = event.note
        self.log(f"Midi note off {note.number} at velocity {note.release}")
        note_off = self._note_offs.pop(self._key(note.number, event.channel), None)
        if note_off is not None:
            note_off(note.raw_release)

    def deactivate(self) -> None:
        """Fire every pending note off and forget them."""
        pending = list(self._note_offs.values())
        self._note_offs.clear()
        for note_off in pending:
            note_off(DEACTIVATE_RELEASE)
