"""
Golden-output tests for the silence-cut resampler and the duration search.

These pin the exact output of fixed inputs. If one fails, a code change
has altered the ramp exponent, the correction blend, the chunking or the
search schedule; the frozen values below were derived by hand from those
constants and must only change together with them.

Input: a 512-sample ramp at 1e-6 per sample. Every window is far below the
default silence threshold, so the whole resampled buffer is one silence
run cut into 128-sample chunks (window_size=128).
"""

import unittest

import numpy as np

from looplib.buffer import SampleBuffer
from looplib.convergence import auto_correct, iter_convergence
from looplib.resample import SilenceCutConfig, resample_silence_cut

SR = 512
CHUNK = 128
CONFIG = SilenceCutConfig(window_size=CHUNK)

# x0.8: 640 resampled frames (longer than 512), so the silence speeds up.
# Correction factor 0.3 + 0.25 * 0.7 * 1.5 = 0.5625; chunk k sits at progress
# k/5 and plays at 1 + 3 * min((k/5)^1.5 * 0.5625, 1).
SHORTEN_RATES = [1.0, 1.1509345884, 1.4269074840, 1.7842791275, 2.2074767078]
SHORTEN_LENGTHS = [128, 111, 89, 71, 57]

# x2.0 with min_silence_rate 0.5: 512 resampled frames (shorter than 1024),
# so the silence slows down. Correction factor 0.3 + 0.5 * 0.7 * 1.5 = 0.825;
# chunk k sits at progress k/4 and plays at 1 - 0.5 * min((k/4)^1.5 * 0.825, 1).
LENGTHEN_RATES = [1.0, 0.9484375, 0.8541592264, 0.7320733907]
LENGTHEN_LENGTHS = [128, 134, 149, 174]


def ramp(frames):
    return SampleBuffer(np.arange(frames) * 1e-6, SR)


def expected_samples(lengths, slope):
    """
    Chunk k re-reads resampled frames [128k, 128k + 128) at evenly spaced
    positions; the last sample of a chunk has no right neighbour inside it.
    """
    pieces = []
    for k, length in enumerate(lengths):
        start = k * CHUNK
        positions = start + np.arange(length) * CHUNK / length
        pieces.append(slope * np.minimum(positions, start + CHUNK - 1))
    return np.concatenate(pieces)


def expected_rates(lengths, rates, base_rate):
    return np.concatenate([np.full(n, base_rate * r) for n, r in zip(lengths, rates)])


class TestSilenceCutGolden(unittest.TestCase):
    """Frozen silence-cut output in both branches."""

    def test_shorten_branch(self):
        result = resample_silence_cut(ramp(512), 0.8, CONFIG)

        self.assertEqual(result.buffer.frame_count, sum(SHORTEN_LENGTHS))
        self.assertEqual(result.buffer.frame_count, 456)
        np.testing.assert_allclose(
            result.buffer.data[0], expected_samples(SHORTEN_LENGTHS, 0.8e-6), rtol=0, atol=1e-12
        )
        np.testing.assert_allclose(
            result.rate_history.rates, expected_rates(SHORTEN_LENGTHS, SHORTEN_RATES, 0.8), rtol=1e-9
        )

    def test_lengthen_branch(self):
        config = SilenceCutConfig(min_silence_rate=0.5, window_size=CHUNK)
        result = resample_silence_cut(ramp(1024), 2.0, config)

        self.assertEqual(result.buffer.frame_count, sum(LENGTHEN_LENGTHS))
        self.assertEqual(result.buffer.frame_count, 585)
        np.testing.assert_allclose(
            result.buffer.data[0], expected_samples(LENGTHEN_LENGTHS, 2e-6), rtol=0, atol=1e-12
        )
        np.testing.assert_allclose(
            result.rate_history.rates, expected_rates(LENGTHEN_LENGTHS, LENGTHEN_RATES, 2.0), rtol=1e-9
        )

    def test_history_times(self):
        result = resample_silence_cut(ramp(512), 0.8, CONFIG)
        np.testing.assert_allclose(result.rate_history.times, np.arange(456) / SR)


class TestConvergenceGolden(unittest.TestCase):
    """
    Frozen search trail: 512-sample ramp at x0.8 aimed at 400 frames.

    1. default config            -> 456 frames, too long, step 10 * 0.14
    2. (1.0, 9.6, 1.9)           -> 303 frames, too short, target bracketed
    3. midpoint of 1 and 2       -> 362 frames, still too short
    4. midpoint of 1 and 3       -> 404 frames, within 0.01 s
    """

    TARGET = 400 / SR
    TRAIL = [
        # (min_silence_rate, max_silence_rate, strength, frames)
        (1.0, 4.0, 0.5, 456),
        (1.0, 9.6, 1.9, 303),
        (1.0, 6.8, 1.2, 362),
        (1.0, 5.4, 0.85, 404),
    ]

    def test_trail(self):
        steps = list(iter_convergence(ramp(512), 0.8, self.TARGET, config=CONFIG))
        self.assertEqual(len(steps), len(self.TRAIL))

        for step, (low, high, strength, frames) in zip(steps, self.TRAIL):
            with self.subTest(iteration=step.iteration):
                self.assertAlmostEqual(step.config.min_silence_rate, low, places=9)
                self.assertAlmostEqual(step.config.max_silence_rate, high, places=9)
                self.assertAlmostEqual(step.config.silence_correction_strength, strength, places=9)
                self.assertEqual(step.buffer.frame_count, frames)
                self.assertAlmostEqual(step.duration_diff, (frames - 400) / SR)

        self.assertEqual([s.converged for s in steps], [False, False, False, True])

    def test_auto_correct_result(self):
        result = auto_correct(ramp(512), 0.8, self.TARGET, config=CONFIG)
        self.assertTrue(result.converged)
        self.assertEqual(result.iterations, 4)
        self.assertEqual(result.buffer.frame_count, 404)
        self.assertAlmostEqual(result.residual, 4 / SR)
        self.assertAlmostEqual(result.initial_residual, 56 / SR)


if __name__ == "__main__":
    unittest.main()
