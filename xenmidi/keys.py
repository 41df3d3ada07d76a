from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


WHITES = (0, 2, 4, 5, 7, 9, 11)


@dataclass(frozen=True)
class MidiKeyInfo:
    """Piano layout of a key.

    White keys carry `white_number`, their contiguous index among white keys.
    Black keys carry the white keys they are a sharp and a flat of.
    """

    white_number: Optional[int] = None
    sharp_of: Optional[int] = None
    flat_of: Optional[int] = None

    @property
    def is_white(self) -> bool:
        return self.white_number is not None


def midi_key_info(chromatic_number: int) -> MidiKeyInfo:
    octave, index = divmod(int(chromatic_number), 12)
    if index in WHITES:
        return MidiKeyInfo(white_number=(index + 1) // 2 + 7 * octave)
    # C# and D# sit left of the E/F gap, F# G# A# right of it
    if index in (1, 3):
        return MidiKeyInfo(sharp_of=(index - 1) // 2 + 7 * octave, flat_of=(index + 1) // 2 + 7 * octave)
    return MidiKeyInfo(sharp_of=index // 2 + 7 * octave, flat_of=(index + 2) // 2 + 7 * octave)
