"""
Tests for the fade curve families and FadeSettings.
"""

import math
import unittest

import numpy as np

from looplib import fade_curves
from looplib.fade_curves import (
    FadeSettings,
    LINEAR,
    LOGARITHMIC,
    EXPONENTIAL,
    CUSTOM,
    FADE_MODES,
)


class TestEndpoints(unittest.TestCase):
    """Every curve starts at 0 and ends at 1."""

    def test_all_modes_hit_endpoints(self):
        for mode in FADE_MODES:
            for cp in (None, (0.1, 0.1), (0.5, 0.5), (0.9, 0.9), (0.25, 0.1)):
                with self.subTest(mode=mode, control_point=cp):
                    self.assertAlmostEqual(fade_curves.evaluate(mode, 0.0, cp), 0.0, places=12)
                    self.assertAlmostEqual(fade_curves.evaluate(mode, 1.0, cp), 1.0, places=12)

    def test_fade_out_endpoints(self):
        for mode in FADE_MODES:
            with self.subTest(mode=mode):
                self.assertAlmostEqual(
                    fade_curves.evaluate(mode, 0.0, (0.9, 0.9), is_fade_out=True), 0.0, places=12)
                self.assertAlmostEqual(
                    fade_curves.evaluate(mode, 1.0, (0.9, 0.9), is_fade_out=True), 1.0, places=12)

    def test_time_is_clamped(self):
        self.assertEqual(fade_curves.evaluate(LINEAR, -0.5), 0.0)
        self.assertEqual(fade_curves.evaluate(LINEAR, 1.7), 1.0)


class TestCurveValues(unittest.TestCase):
    """Pin the family formulas at the midpoint."""

    def test_linear_is_identity(self):
        t = np.linspace(0, 1, 11)
        np.testing.assert_allclose(fade_curves.fade_curve(LINEAR, t), t)

    def test_logarithmic_midpoint(self):
        expected = math.log(3.0) / math.log(5.0)
        self.assertAlmostEqual(fade_curves.evaluate(LOGARITHMIC, 0.5), expected, places=12)

    def test_exponential_midpoint(self):
        expected = (math.exp(2.0) - 1.0) / (math.exp(4.0) - 1.0)
        self.assertAlmostEqual(fade_curves.evaluate(EXPONENTIAL, 0.5), expected, places=12)

    def test_log_above_linear_above_exp(self):
        t = np.linspace(0.05, 0.95, 19)
        log = fade_curves.fade_curve(LOGARITHMIC, t)
        exp = fade_curves.fade_curve(EXPONENTIAL, t)
        self.assertTrue(np.all(log > t))
        self.assertTrue(np.all(exp < t))

    def test_custom_centre_control_is_plain_bezier(self):
        # cx = 0.5 leaves t unwarped: y = 2(1-t)t*cy + t^2
        self.assertAlmostEqual(fade_curves.evaluate(CUSTOM, 0.5, (0.5, 0.1)), 0.3, places=12)
        self.assertAlmostEqual(fade_curves.evaluate(CUSTOM, 0.5, (0.5, 0.9)), 0.7, places=12)

    def test_warp_power(self):
        self.assertAlmostEqual(fade_curves.warp_power(0.5), 1.0)
        self.assertAlmostEqual(fade_curves.warp_power(0.1), 1.0 - 0.8 * 0.99)
        self.assertAlmostEqual(fade_curves.warp_power(0.9), 1.0 - 0.8 * 0.99)
        self.assertAlmostEqual(fade_curves.warp_power(0.0), 0.01)

    def test_small_control_x_rises_early(self):
        early = fade_curves.evaluate(CUSTOM, 0.1, (0.1, 0.5))
        late = fade_curves.evaluate(CUSTOM, 0.1, (0.9, 0.5))
        self.assertGreater(early, late)

    def test_custom_without_control_point_falls_back_to_log(self):
        self.assertEqual(
            fade_curves.evaluate(CUSTOM, 0.3),
            fade_curves.evaluate(LOGARITHMIC, 0.3),
        )

    def test_unknown_mode_falls_back_to_log(self):
        self.assertEqual(
            fade_curves.evaluate("wobbly", 0.3),
            fade_curves.evaluate(LOGARITHMIC, 0.3),
        )

    def test_curves_are_monotonic(self):
        t = np.linspace(0, 1, 501)
        for mode in FADE_MODES:
            for cp in ((0.1, 0.1), (0.5, 0.9), (0.9, 0.5)):
                with self.subTest(mode=mode, control_point=cp):
                    y = fade_curves.fade_curve(mode, t, cp)
                    self.assertTrue(np.all(np.diff(y) >= -1e-12))


class TestFadeSettings(unittest.TestCase):
    """Test settings normalisation and loading."""

    def test_aliases(self):
        self.assertEqual(FadeSettings("log").mode, LOGARITHMIC)
        self.assertEqual(FadeSettings("exp").mode, EXPONENTIAL)
        self.assertEqual(FadeSettings("LINEAR").mode, LINEAR)

    def test_control_point_clamped(self):
        settings = FadeSettings(CUSTOM, 0.0, 1.0)
        self.assertEqual(settings.control_point, (0.1, 0.9))

    def test_settings_are_frozen(self):
        settings = FadeSettings()
        with self.assertRaises(Exception):
            settings.mode = LINEAR

    def test_defaults(self):
        self.assertEqual(fade_curves.DEFAULT_FADE_IN.control_point, (0.25, 0.1))
        self.assertEqual(fade_curves.DEFAULT_FADE_OUT.control_point, (0.9, 0.9))
        self.assertEqual(fade_curves.DEFAULT_FADE_IN.mode, LOGARITHMIC)

    def test_from_dict_partial(self):
        settings = FadeSettings.from_dict({"mode": "custom"}, fade_curves.DEFAULT_FADE_OUT)
        self.assertEqual(settings.mode, CUSTOM)
        self.assertEqual(settings.control_point, (0.9, 0.9))

    def test_from_dict_empty_returns_default(self):
        self.assertIs(FadeSettings.from_dict(None, fade_curves.DEFAULT_FADE_OUT),
                      fade_curves.DEFAULT_FADE_OUT)

    def test_settings_curve_uses_default(self):
        t = np.array([0.5])
        np.testing.assert_allclose(
            fade_curves.settings_curve(None, t),
            fade_curves.fade_curve(LOGARITHMIC, t),
        )


if __name__ == "__main__":
    unittest.main()
