import unittest

from api.userdata.sampler import ResponseTimeSampler


class SamplerTests(unittest.TestCase):
    def test_empty_average_is_zero(self):
        self.assertEqual(ResponseTimeSampler().average(), 0.0)

    def test_average_of_recent_samples(self):
        sampler = ResponseTimeSampler(max_samples=3)
        for ms in (100, 1, 2, 3):
            sampler.record(ms)
        self.assertEqual(sampler.count, 3)
        self.assertAlmostEqual(sampler.average(), 2.0)

    def test_reset(self):
        sampler = ResponseTimeSampler()
        sampler.record(5)
        sampler.reset()
        self.assertEqual(sampler.count, 0)
        self.assertEqual(sampler.average(), 0.0)


if __name__ == "__main__":
    unittest.main()
