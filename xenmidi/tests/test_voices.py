import math
import unittest

from xenmidi.voices import EXPIRED, VoiceAllocator, normalize_channels


class TestVoiceAllocator(unittest.TestCase):
    def _mk(self, channels=(1, 2, 3)):
        logs = []
        return VoiceAllocator(channels, log=logs.append), logs

    def test_initial_voices_are_expired_and_unbent(self):
        alloc, _ = self._mk()
        self.assertEqual([v.channel for v in alloc.voices], [1, 2, 3])
        for v in alloc.voices:
            self.assertEqual(v.age, EXPIRED)
            self.assertTrue(math.isnan(v.cents_offset))

    def test_aging_and_oldest_first(self):
        alloc, logs = self._mk()
        self.assertEqual(alloc.select_voice(0.0).channel, 1)
        # Ties between never-used voices go to pool order
        self.assertEqual(alloc.select_voice(10.0).channel, 2)
        self.assertEqual(alloc.select_voice(20.0).channel, 3)
        self.assertEqual([v.age for v in alloc.voices], [2, 1, 0])
        # Fourth distinct offset evicts the oldest
        v = alloc.select_voice(30.0)
        self.assertEqual(v.channel, 1)
        self.assertEqual(v.cents_offset, 30.0)
        self.assertEqual([v.age for v in alloc.voices], [0, 2, 1])
        self.assertEqual(logs, [])

    def test_exact_reuse_despite_intervening_allocations(self):
        alloc, logs = self._mk()
        alloc.select_voice(0.0)
        alloc.select_voice(10.0)
        alloc.select_voice(20.0)
        v = alloc.select_voice(10.0 + 1e-9)
        self.assertEqual(v.channel, 2)
        self.assertEqual(logs, ["Re-using channel 2"])
        self.assertEqual([v.age for v in alloc.voices], [3, 0, 1])
        self.assertEqual(alloc.metrics["voice_reuse"], 1)
        self.assertEqual(alloc.metrics["voice_evict"], 3)

    def test_outside_tolerance_is_not_reused(self):
        alloc, logs = self._mk(channels=(1, 2))
        alloc.select_voice(0.0)
        v = alloc.select_voice(1e-5)
        self.assertEqual(v.channel, 2)
        self.assertEqual(logs, [])

    def test_expired_voice_is_evicted_before_sounding_ones(self):
        alloc, _ = self._mk(channels=(1, 2))
        v1 = alloc.select_voice(0.0)
        alloc.select_voice(10.0)
        alloc.expire(v1)
        self.assertEqual(v1.age, EXPIRED)
        # channel 2 is more recent; channel 1 was released
        self.assertEqual(alloc.select_voice(20.0).channel, 1)

    def test_channel_count_bound(self):
        alloc, _ = self._mk(channels=(1, 2))
        alloc.select_voice(0.0)
        alloc.select_voice(10.0)
        # Both still sounding; a third offset must evict the logically oldest
        v = alloc.select_voice(20.0)
        self.assertEqual(v.channel, 1)
        self.assertEqual(sorted(x.cents_offset for x in alloc.voices), [10.0, 20.0])

    def test_reset(self):
        alloc, _ = self._mk()
        alloc.select_voice(5.0)
        alloc.reset()
        self.assertTrue(all(v.age == EXPIRED for v in alloc.voices))
        self.assertTrue(all(math.isnan(v.cents_offset) for v in alloc.voices))

    def test_empty_pool_cannot_select(self):
        alloc, _ = self._mk(channels=())
        self.assertEqual(len(alloc), 0)
        with self.assertRaises(RuntimeError):
            alloc.select_voice(0.0)


class TestNormalizeChannels(unittest.TestCase):
    def test_keeps_insertion_order_and_drops_duplicates(self):
        self.assertEqual(normalize_channels([3, 1, 3, 2]), (3, 1, 2))

    def test_rejects_out_of_range(self):
        for bad in ([0], [17], [1.5], [True]):
            with self.assertRaises(ValueError):
                normalize_channels(bad)


if __name__ == "__main__":
    unittest.main()
