"""Tests for meter.stats -- pure statistical functions."""

import math
import unittest

from meter.stats import (
    BUCKET_NAMES,
    ThroughputResult,
    calculate_jitter,
    calculate_mean,
    calculate_speed_mbps,
    classify_latency,
    format_latency,
    format_speed,
)


class TestCalculateSpeedMbps(unittest.TestCase):
    def test_basic(self):
        # 10 MB in 2 s = 40 Mbps
        self.assertAlmostEqual(calculate_speed_mbps(10_000_000, 2.0), 40.0)

    def test_decimal_megabits(self):
        self.assertAlmostEqual(calculate_speed_mbps(125_000, 1.0), 1.0)

    def test_zero_elapsed(self):
        self.assertEqual(calculate_speed_mbps(1_000_000, 0), 0.0)

    def test_negative_elapsed(self):
        self.assertEqual(calculate_speed_mbps(1_000_000, -1.0), 0.0)

    def test_zero_bytes(self):
        self.assertEqual(calculate_speed_mbps(0, 5.0), 0.0)


class TestMeanAndJitter(unittest.TestCase):
    def test_mean(self):
        self.assertAlmostEqual(calculate_mean([10, 20, 30, 40, 50]), 30.0)

    def test_jitter_is_population_stdev(self):
        # variance = (400 + 100 + 0 + 100 + 400) / 5 = 200
        self.assertAlmostEqual(calculate_jitter([10, 20, 30, 40, 50]), math.sqrt(200))

    def test_single_sample(self):
        self.assertEqual(calculate_mean([42.0]), 42.0)
        self.assertEqual(calculate_jitter([42.0]), 0.0)

    def test_identical_samples(self):
        self.assertEqual(calculate_jitter([25.0, 25.0, 25.0]), 0.0)

    def test_empty(self):
        self.assertEqual(calculate_mean([]), 0.0)
        self.assertEqual(calculate_jitter([]), 0.0)

    def test_accepts_iterables(self):
        self.assertAlmostEqual(calculate_mean(x for x in (1.0, 3.0)), 2.0)


class TestClassifyLatency(unittest.TestCase):
    def test_buckets(self):
        self.assertEqual(classify_latency(0), "excellent")
        self.assertEqual(classify_latency(29.9), "excellent")
        self.assertEqual(classify_latency(60), "good")
        self.assertEqual(classify_latency(180), "fair")
        self.assertEqual(classify_latency(5000), "poor")

    def test_lower_bounds_inclusive(self):
        self.assertEqual(classify_latency(30), "good")
        self.assertEqual(classify_latency(100), "fair")
        self.assertEqual(classify_latency(250), "poor")

    def test_just_below_bounds(self):
        self.assertEqual(classify_latency(99.999), "good")
        self.assertEqual(classify_latency(249.999), "fair")

    def test_bucket_names_cover_all_results(self):
        for value in (1, 50, 150, 300):
            self.assertIn(classify_latency(value), BUCKET_NAMES)


class TestThroughputResult(unittest.TestCase):
    def test_calculate(self):
        r = ThroughputResult(bytes_transferred=10_000_000, elapsed_seconds=2.0)
        r.calculate()
        self.assertAlmostEqual(r.speed_mbps, 40.0)

    def test_to_dict(self):
        r = ThroughputResult(
            bytes_transferred=1000, elapsed_seconds=0.12345,
            speed_mbps=0.0648, samples=[1.234, 5.678],
        )
        d = r.to_dict()
        self.assertEqual(d["bytes"], 1000)
        self.assertEqual(d["elapsed_seconds"], 0.123)
        self.assertEqual(d["speed_mbps"], 0.06)
        self.assertEqual(d["samples"], [1.23, 5.68])


class TestFormatting(unittest.TestCase):
    def test_format_speed_mbps(self):
        self.assertEqual(format_speed(95.5), "95.50 Mbps")

    def test_format_speed_gbps(self):
        self.assertEqual(format_speed(1500), "1.50 Gbps")

    def test_format_latency_ms(self):
        self.assertEqual(format_latency(12.34), "12.3 ms")

    def test_format_latency_seconds(self):
        self.assertEqual(format_latency(1500), "1.50 s")


if __name__ == "__main__":
    unittest.main()
