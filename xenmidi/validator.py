from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional


DEFAULT_CONFIG: Dict[str, Any] = {
    "output": None,
    "input": None,
    "channels": [1, 2, 3, 4, 5, 6, 7, 8],
    "inputChannels": [1],
    "bendRangeSemitones": 2,
    "edo": 12,
    "baseNote": 69,
    "baseFrequency": 440.0,
}


class ValidationError(Exception):
    def __init__(self, errors: List[str], path: str = "") -> None:
        self.errors = list(errors)
        self.path = path
        where = f"{path}: " if path else ""
        super().__init__(where + "; ".join(self.errors))


def _err(errors: List[str], path: str, msg: str) -> None:
    errors.append(f"{path}: {msg}")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _check_channels(errors: List[str], path: str, chans: Any) -> None:
    if not isinstance(chans, list) or len(chans) == 0:
        _err(errors, path, "required non-empty array of channels")
        return
    seen = set()
    for i, ch in enumerate(chans):
        if not _is_int(ch) or not (1 <= ch <= 16):
            _err(errors, f"{path}/{i}", "integer 1..16 required")
        elif ch in seen:
            _err(errors, f"{path}/{i}", f"duplicate channel {ch}")
        else:
            seen.add(ch)


def validate_config(cfg: Dict[str, Any]) -> List[str]:
    """Check a device configuration object.

    Returns a list of human-readable errors with JSON-pointer-like paths.
    Unknown keys are ignored.
    """
    errors: List[str] = []
    if not isinstance(cfg, dict):
        return ["/: must be object"]

    for key in ("output", "input"):
        v = cfg.get(key)
        if v is not None and not isinstance(v, str):
            _err(errors, f"/{key}", "port name filter must be a string")

    if "channels" in cfg:
        _check_channels(errors, "/channels", cfg.get("channels"))
    if "inputChannels" in cfg:
        _check_channels(errors, "/inputChannels", cfg.get("inputChannels"))

    br = cfg.get("bendRangeSemitones")
    if br is not None and (not _is_int(br) or not (1 <= br <= 96)):
        _err(errors, "/bendRangeSemitones", "integer 1..96 required")

    edo = cfg.get("edo")
    if edo is not None and (not _is_int(edo) or edo < 1):
        _err(errors, "/edo", "integer >= 1 required")

    base = cfg.get("baseNote")
    if base is not None and (not _is_int(base) or not (0 <= base <= 127)):
        _err(errors, "/baseNote", "integer 0..127 required")

    bf = cfg.get("baseFrequency")
    if bf is not None and (not _is_number(bf) or bf <= 0):
        _err(errors, "/baseFrequency", "positive number required")

    return errors


def validate_notes(doc: Dict[str, Any]) -> List[str]:
    """Check a notes document: {"notes": [{frequency, duration, time?, rawAttack?, rawRelease?}]}."""
    errors: List[str] = []
    if not isinstance(doc, dict):
        return ["/: must be object"]
    notes = doc.get("notes")
    if not isinstance(notes, list):
        _err(errors, "/notes", "required array")
        return errors
    for i, n in enumerate(notes):
        npath = f"/notes/{i}"
        if not isinstance(n, dict):
            _err(errors, npath, "must be object")
            continue
        f = n.get("frequency")
        if not _is_number(f) or f <= 0:
            _err(errors, f"{npath}/frequency", "positive number (Hz) required")
        d = n.get("duration")
        if not _is_number(d) or d < 0:
            _err(errors, f"{npath}/duration", "non-negative number (ms) required")
        t = n.get("time")
        if t is not None:
            if isinstance(t, str):
                s = t.strip()
                try:
                    float(s[1:] if s.startswith("+") else s)
                except ValueError:
                    _err(errors, f"{npath}/time", "'+ms', numeric string or number required")
            elif not _is_number(t):
                _err(errors, f"{npath}/time", "'+ms', numeric string or number required")
        for key in ("rawAttack", "rawRelease"):
            v = n.get(key)
            if v is not None and (not _is_int(v) or not (0 <= v <= 127)):
                _err(errors, f"{npath}/{key}", "integer 0..127 required")
    return errors


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a config file over DEFAULT_CONFIG. A None path yields the defaults."""
    cfg = dict(DEFAULT_CONFIG)
    if path is None:
        return cfg
    doc = _read_json(path)
    errors = validate_config(doc)
    if errors:
        raise ValidationError(errors, path)
    cfg.update(doc)
    return cfg


def load_notes(path: str) -> Dict[str, Any]:
    doc = _read_json(path)
    errors = validate_notes(doc)
    if errors:
        raise ValidationError(errors, path)
    return doc


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Validate a xenmidi config or notes JSON file")
    ap.add_argument("path", help="Path to JSON file")
    ap.add_argument("--kind", choices=["config", "notes"], default="notes", help="What the file holds (default: notes)")
    args = ap.parse_args(argv)

    try:
        doc = _read_json(args.path)
    except Exception as e:
        print(f"error: failed to read {args.path}: {e}", file=sys.stderr)
        return 2

    errors = validate_config(doc) if args.kind == "config" else validate_notes(doc)
    if errors:
        print(f"invalid {args.kind} file:")
        for e in errors:
            print(f" - {e}")
        return 1

    print("ok: valid")
    return 0


if __name__ == "__main__":
    sys.exit(main())
