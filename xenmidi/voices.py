from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple


# Large but finite age marking a voice whose note has been released
EXPIRED = 10000

# Cents offset tolerance for channel reuse
EPSILON = 1e-6


def _nolog(_msg: str) -> None:
    return None


@dataclass
class Voice:
    """One pitch-bendable MIDI channel slot.

    `cents_offset` is meaningful only while `age` is below EXPIRED.
    """

    channel: int
    age: int = EXPIRED
    cents_offset: float = field(default=math.nan)


def normalize_channels(channels: Iterable[int]) -> Tuple[int, ...]:
    """Return channels as a de-duplicated tuple in first-insertion order.

    Channels are 1-indexed (1..16) as surfaced by port adapters.
    """
    out: List[int] = []
    for ch in channels:
        if isinstance(ch, bool) or not isinstance(ch, int):
            raise ValueError(f"channel must be an integer, got {ch!r}")
        if not (1 <= ch <= 16):
            raise ValueError(f"channel must be in 1..16, got {ch}")
        if ch not in out:
            out.append(ch)
    return tuple(out)


class VoiceAllocator:
    """Fixed pool of channel voices with bend-aware reuse and oldest-first eviction.

    - Every selection ages all voices by one.
    - A voice already holding the requested cents offset (within EPSILON) is
      reused, first in pool order.
    - Otherwise the voice with the strictly greatest age is retuned; ties go
      to the earliest voice in pool order.
    - Released voices are set to EXPIRED so they are evicted before any
      sounding voice.
    """

    def __init__(self, channels: Iterable[int], log: Optional[Callable[[str], None]] = None) -> None:
        self.channels: Tuple[int, ...] = normalize_channels(channels)
        self.log: Callable[[str], None] = log if log is not None else _nolog
        self.voices: List[Voice] = [Voice(channel=ch) for ch in self.channels]
        self.metrics: Dict[str, int] = {"voice_reuse": 0, "voice_evict": 0}

    def __len__(self) -> int:
        return len(self.voices)

    def select_voice(self, cents_offset: float) -> Voice:
        if not self.voices:
            raise RuntimeError("no channels configured")
        # Age counts note-ons since the voice was last selected
        for voice in self.voices:
            voice.age += 1

        for voice in self.voices:
            if abs(voice.cents_offset - cents_offset) < EPSILON:
                self.log(f"Re-using channel {voice.channel}")
                voice.age = 0
                self.metrics["voice_reuse"] += 1
                return voice

        oldest = self.voices[0]
        for voice in self.voices:
            if voice.age > oldest.age:
                oldest = voice
        oldest.age = 0
        oldest.cents_offset = float(cents_offset)
        self.metrics["voice_evict"] += 1
        return oldest

    def expire(self, voice: Voice) -> None:
        voice.age = EXPIRED

    def reset(self) -> None:
        """Forget all bends and mark every voice expired."""
        for voice in self.voices:
            voice.age = EXPIRED
            voice.cents_offset = math.nan

    def snapshot(self) -> List[Dict[str, float]]:
        return [
            {"channel": v.channel, "age": v.age, "centsOffset": v.cents_offset}
            for v in self.voices
        ]
