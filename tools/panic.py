from __future__ import annotations

import argparse

from xenmidi.midi_out import MidoOutput, open_mido_output


def main():
    ap = argparse.ArgumentParser(description="Send All Notes Off / All Sound Off and recenter pitch bend on every channel")
    ap.add_argument("--port", required=True, help="Substring to match MIDI port (e.g., 'Surge')")
    args = ap.parse_args()
    out = open_mido_output(args.port)
    MidoOutput(out).panic()
    print("panic sent (CC64/120/123 + pitchwheel center)")


if __name__ == "__main__":
    main()
