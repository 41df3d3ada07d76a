import unittest

from xenmidi.keys import MidiKeyInfo, midi_key_info


class TestMidiKeyInfo(unittest.TestCase):
    def test_white_keys_are_contiguous(self):
        whites = [midi_key_info(n).white_number for n in (60, 62, 64, 65, 67, 69, 71, 72)]
        self.assertEqual(whites, [35, 36, 37, 38, 39, 40, 41, 42])

    def test_black_keys(self):
        self.assertEqual(midi_key_info(61), MidiKeyInfo(sharp_of=35, flat_of=36))
        self.assertEqual(midi_key_info(63), MidiKeyInfo(sharp_of=36, flat_of=37))
        self.assertEqual(midi_key_info(66), MidiKeyInfo(sharp_of=38, flat_of=39))
        self.assertEqual(midi_key_info(68), MidiKeyInfo(sharp_of=39, flat_of=40))
        self.assertEqual(midi_key_info(70), MidiKeyInfo(sharp_of=40, flat_of=41))
        self.assertFalse(midi_key_info(70).is_white)

    def test_negative_indices(self):
        self.assertEqual(midi_key_info(-1).white_number, -1)
        self.assertEqual(midi_key_info(-12).white_number, -7)
        self.assertEqual(midi_key_info(-2), MidiKeyInfo(sharp_of=-2, flat_of=-1))


if __name__ == "__main__":
    unittest.main()
