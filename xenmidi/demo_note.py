from xenmidi.midi_engine import MidiOut
from xenmidi.midi_out import VirtualOutput
from xenmidi.scheduler import Note


def main():
    # A just major triad on A plus its octave, on three channels
    notes = [
        Note(frequency=440.0, duration=500.0, time="+0"),
        Note(frequency=550.0, duration=500.0, time="+0"),
        Note(frequency=660.0, duration=500.0, time="+0"),
        Note(frequency=880.0, duration=500.0, time="+250"),
    ]

    out = VirtualOutput()
    midi_out = MidiOut(out, [1, 2, 3], log=print, now=lambda: 0.0)
    midi_out.play_notes(notes)
    print("events:")
    for e in out.events:
        print(e)


if __name__ == "__main__":
    main()
