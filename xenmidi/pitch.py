from __future__ import annotations

import math
from typing import Tuple


A4_NOTE = 69
A4_FREQUENCY = 440.0


def frequency_to_midi(frequency: float) -> Tuple[int, float]:
    """Map a frequency in Hz to the nearest 12-TET MIDI note and a cents offset.

    Ties round up (a quarter tone above C4 resolves to C#4 at -50 cents).
    """
    f = float(frequency)
    if f <= 0:
        raise ValueError(f"frequency must be positive, got {frequency}")
    midi = A4_NOTE + 12.0 * math.log2(f / A4_FREQUENCY)
    note = int(math.floor(midi + 0.5))
    return note, (midi - note) * 100.0


def midi_to_frequency(note: float, cents: float = 0.0) -> float:
    return A4_FREQUENCY * 2.0 ** ((float(note) + float(cents) / 100.0 - A4_NOTE) / 12.0)


def edo_frequency(index: int, edo: int, base_note: int = A4_NOTE, base_frequency: float = A4_FREQUENCY) -> float:
    """Frequency of key `index` in `edo` equal divisions of the octave.

    The key numbered `base_note` sounds at `base_frequency`.
    """
    if edo < 1:
        raise ValueError("edo must be >= 1")
    return float(base_frequency) * 2.0 ** ((int(index) - int(base_note)) / float(edo))
