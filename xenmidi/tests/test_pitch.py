import unittest

from xenmidi.pitch import edo_frequency, frequency_to_midi, midi_to_frequency


class TestPitch(unittest.TestCase):
    def test_frequency_to_midi(self):
        self.assertEqual(frequency_to_midi(440), (69, 0.0))
        note, cents = frequency_to_midi(550)
        self.assertEqual(note, 73)
        self.assertAlmostEqual(cents, -13.686286135165915, places=9)
        note, cents = frequency_to_midi(1100)
        self.assertEqual(note, 85)
        self.assertAlmostEqual(cents, -13.686286135165915, places=9)

    def test_rejects_non_positive(self):
        with self.assertRaises(ValueError):
            frequency_to_midi(0)
        with self.assertRaises(ValueError):
            frequency_to_midi(-440)

    def test_midi_to_frequency(self):
        self.assertAlmostEqual(midi_to_frequency(69), 440.0)
        self.assertAlmostEqual(midi_to_frequency(57), 220.0)
        self.assertAlmostEqual(midi_to_frequency(73, -13.686286135165915), 550.0, places=6)

    def test_edo_frequency(self):
        self.assertEqual(edo_frequency(69, 31), 440.0)
        self.assertAlmostEqual(edo_frequency(100, 31), 880.0)
        self.assertAlmostEqual(edo_frequency(60, 12, base_note=60, base_frequency=261.6), 261.6)
        with self.assertRaises(ValueError):
            edo_frequency(0, 0)


if __name__ == "__main__":
    unittest.main()
