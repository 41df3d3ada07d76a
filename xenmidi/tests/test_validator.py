import json
import os
import tempfile
import unittest

from xenmidi.validator import DEFAULT_CONFIG, ValidationError, load_config, load_notes, main, validate_config, validate_notes


class TestValidateConfig(unittest.TestCase):
    def test_defaults_are_valid(self):
        self.assertEqual(validate_config(DEFAULT_CONFIG), [])

    def test_reports_paths(self):
        errors = validate_config({
            "output": 3,
            "channels": [1, 1, 17],
            "bendRangeSemitones": 0,
            "edo": 0,
            "baseNote": 128,
            "baseFrequency": -1,
        })
        self.assertIn("/output: port name filter must be a string", errors)
        self.assertIn("/channels/1: duplicate channel 1", errors)
        self.assertIn("/channels/2: integer 1..16 required", errors)
        self.assertIn("/bendRangeSemitones: integer 1..96 required", errors)
        self.assertIn("/edo: integer >= 1 required", errors)
        self.assertIn("/baseNote: integer 0..127 required", errors)
        self.assertIn("/baseFrequency: positive number required", errors)

    def test_fractional_bend_range_rejected(self):
        self.assertEqual(validate_config({"bendRangeSemitones": 2.5}), ["/bendRangeSemitones: integer 1..96 required"])
        self.assertEqual(validate_config({"bendRangeSemitones": 12}), [])

    def test_empty_channel_list(self):
        self.assertEqual(validate_config({"inputChannels": []}), ["/inputChannels: required non-empty array of channels"])


class TestValidateNotes(unittest.TestCase):
    def test_ok(self):
        doc = {"notes": [
            {"frequency": 440, "duration": 500},
            {"frequency": 550.5, "duration": 0, "time": "+100", "rawAttack": 0, "rawRelease": 127},
            {"frequency": 660, "duration": 10, "time": "1234.5"},
            {"frequency": 660, "duration": 10, "time": 99},
        ]}
        self.assertEqual(validate_notes(doc), [])

    def test_errors(self):
        doc = {"notes": [
            {"frequency": 0, "duration": -1},
            {"frequency": 440, "duration": 1, "time": "later", "rawAttack": 128},
            "x",
        ]}
        errors = validate_notes(doc)
        self.assertIn("/notes/0/frequency: positive number (Hz) required", errors)
        self.assertIn("/notes/0/duration: non-negative number (ms) required", errors)
        self.assertIn("/notes/1/time: '+ms', numeric string or number required", errors)
        self.assertIn("/notes/1/rawAttack: integer 0..127 required", errors)
        self.assertIn("/notes/2: must be object", errors)

    def test_missing_notes(self):
        self.assertEqual(validate_notes({}), ["/notes: required array"])


class TestLoaders(unittest.TestCase):
    def setUp(self):
        self.tempfile = tempfile.NamedTemporaryFile(mode="w+", suffix=".json", delete=False)

    def tearDown(self):
        try:
            self.tempfile.close()
        except Exception:
            pass
        try:
            os.unlink(self.tempfile.name)
        except Exception:
            pass

    def write_doc(self, doc):
        self.tempfile.seek(0)
        self.tempfile.truncate()
        json.dump(doc, self.tempfile)
        self.tempfile.flush()

    def test_load_config_overlays_defaults(self):
        self.write_doc({"channels": [3, 4], "edo": 31})
        cfg = load_config(self.tempfile.name)
        self.assertEqual(cfg["channels"], [3, 4])
        self.assertEqual(cfg["edo"], 31)
        self.assertEqual(cfg["bendRangeSemitones"], 2)
        self.assertEqual(load_config(None), DEFAULT_CONFIG)

    def test_load_config_invalid(self):
        self.write_doc({"channels": [0]})
        with self.assertRaises(ValidationError) as ctx:
            load_config(self.tempfile.name)
        self.assertEqual(ctx.exception.errors, ["/channels/0: integer 1..16 required"])

    def test_load_notes(self):
        self.write_doc({"notes": [{"frequency": 440, "duration": 100}]})
        self.assertEqual(len(load_notes(self.tempfile.name)["notes"]), 1)
        self.write_doc({"notes": [{"frequency": 440}]})
        with self.assertRaises(ValidationError):
            load_notes(self.tempfile.name)

    def test_main_exit_codes(self):
        self.write_doc({"notes": [{"frequency": 440, "duration": 100}]})
        self.assertEqual(main([self.tempfile.name]), 0)
        self.assertEqual(main([self.tempfile.name, "--kind", "config"]), 0)
        self.write_doc({"notes": "nope"})
        self.assertEqual(main([self.tempfile.name]), 1)
        self.assertEqual(main([self.tempfile.name + ".missing"]), 2)


if __name__ == "__main__":
    unittest.main()
