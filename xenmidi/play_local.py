from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from xenmidi.clock import OutputPump
from xenmidi.midi_engine import MidiOut
from xenmidi.midi_in import InputPort, MidiIn
from xenmidi.midi_out import MidoOutput, open_mido_input, open_mido_output
from xenmidi.pitch import edo_frequency
from xenmidi.scheduler import batch_span, note_from_dict
from xenmidi.validator import ValidationError, load_config, load_notes
from xenmidi.ws_server import start_ws_server


def _log_sink(verbose: bool):
    return print if verbose else None


def build_output(cfg: Dict[str, Any], verbose: bool = False):
    """Open the configured port and wrap it. Returns (midi_out, mido_output, pump)."""
    port = open_mido_output(cfg.get("output"))
    mido_out = MidoOutput(port)
    midi_out = MidiOut(
        mido_out,
        cfg.get("channels") or [],
        log=_log_sink(verbose),
        bend_range=cfg.get("bendRangeSemitones", 2),
        now=mido_out.now,
    )
    pump = OutputPump(mido_out.flush_due)
    return midi_out, mido_out, pump


def run_notes(notes_path: str, cfg: Dict[str, Any], verbose: bool = False, ws: bool = False) -> int:
    doc = load_notes(notes_path)
    notes = [note_from_dict(n) for n in doc.get("notes", [])]
    midi_out, mido_out, pump = build_output(cfg, verbose)
    pump.start()
    if ws:
        start_ws_server(midi_out, pump)

    # Everything is queued up front; the pump releases it on time
    events = midi_out.play_notes(notes)
    span = batch_span(events) - events[0].time if events else 0.0
    print(f"[notes] scheduled {len(notes)} notes over {span:.0f} ms")

    done = threading.Event()

    def shutdown(*_):
        midi_out.clear()
        done.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    while not done.is_set() and mido_out.pending_count() > 0:
        done.wait(0.05)
    pump.stop()
    mido_out.flush_due()
    m = midi_out.get_metrics()
    print(f"[metrics] note_on={m.get('msgs_note_on', 0)} note_off={m.get('msgs_note_off', 0)} reuse={m.get('voice_reuse', 0)} evict={m.get('voice_evict', 0)}")
    return 0


def run_relay(cfg: Dict[str, Any], verbose: bool = False, ws: bool = False) -> int:
    """Retune a live MIDI input into an equal division of the octave."""
    midi_out, mido_out, pump = build_output(cfg, verbose)
    edo = int(cfg.get("edo", 12))
    base_note = int(cfg.get("baseNote", 69))
    base_frequency = float(cfg.get("baseFrequency", 440.0))

    def on_note(index: int, raw_attack: int, channel: int):
        frequency = edo_frequency(index, edo, base_note, base_frequency)
        return midi_out.send_note_on(frequency, raw_attack)

    port = InputPort(cfg.get("input") or "input")
    midi_in = MidiIn(on_note, cfg.get("inputChannels") or [1], log=_log_sink(verbose))
    midi_in.listen(port)
    inp = open_mido_input(cfg.get("input"), callback=port.dispatch)
    pump.start()
    if ws:
        start_ws_server(midi_out, pump)
    print(f"[relay] {edo}-EDO on output channels {list(midi_out.channels)}; Ctrl-C to stop")

    def shutdown(*_):
        midi_in.unlisten(port)
        midi_in.deactivate()
        try:
            inp.close()
        except Exception:
            pass
        pump.stop()
        mido_out.flush_due()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    # Run forever; callbacks drive the output
    threading.Event().wait()
    return 0


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    out = dict(cfg)
    if args.port is not None:
        out["output"] = args.port
    if args.input is not None:
        out["input"] = args.input
    if args.channels:
        out["channels"] = list(args.channels)
    if args.edo is not None:
        out["edo"] = args.edo
    return out


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Free-pitch polyphonic MIDI through multichannel pitch bend")
    ap.add_argument("notes", nargs="?", default="notes.json", help="Path to notes JSON (notes mode, default: notes.json)")
    ap.add_argument("--mode", choices=["notes", "relay"], default="notes", help="Play a notes file, or retune a live input")
    ap.add_argument("--config", help="Path to config JSON")
    ap.add_argument("--port", help="Substring to match MIDI output port")
    ap.add_argument("--input", help="Substring to match MIDI input port (relay mode)")
    ap.add_argument("--channels", type=int, nargs="+", help="Output channels (1..16) to use for pitch bent notes")
    ap.add_argument("--edo", type=int, help="Equal divisions of the octave (relay mode)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Log every note on/off and channel reuse")
    ap.add_argument("--ws", action="store_true", help="Start a local WS server to broadcast metrics (ws://127.0.0.1:8765)")
    args = ap.parse_args(argv)

    try:
        cfg = _apply_overrides(load_config(args.config), args)
        if args.mode == "notes":
            return run_notes(args.notes, cfg, verbose=args.verbose, ws=args.ws)
        return run_relay(cfg, verbose=args.verbose, ws=args.ws)
    except ValidationError as e:
        print(f"invalid {e.path}:")
        for err in e.errors:
            print(f" - {err}")
        return 1
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
