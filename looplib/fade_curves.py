"""
Fade curve families for loop crossfades.

All curves map normalised time t in [0, 1] to a gain in [0, 1] with
exact endpoints: curve(0) == 0 and curve(1) == 1. Fade-outs use
1 - curve(t).
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

LINEAR = "linear"
LOGARITHMIC = "logarithmic"
EXPONENTIAL = "exponential"
CUSTOM = "custom"

FADE_MODES = (LINEAR, LOGARITHMIC, EXPONENTIAL, CUSTOM)

_MODE_ALIASES = {
    "lin": LINEAR,
    "log": LOGARITHMIC,
    "exp": EXPONENTIAL,
}

# Curve steepness for the log / exp families
CURVE_K = 4.0

# Lowest exponent of the custom-curve time warp (near-vertical edge)
MIN_WARP_POWER = 0.01

CONTROL_MIN = 0.1
CONTROL_MAX = 0.9

ControlPoint = Tuple[float, float]


def normalize_mode(mode: Optional[str]) -> str:
    """Map mode names and short aliases onto FADE_MODES (default: logarithmic)."""
    if mode is None:
        return LOGARITHMIC
    key = str(mode).lower()
    key = _MODE_ALIASES.get(key, key)
    return key if key in FADE_MODES else LOGARITHMIC


def _clamp_control(value: float) -> float:
    return float(min(CONTROL_MAX, max(CONTROL_MIN, value)))


@dataclass(frozen=True)
class FadeSettings:
    """Fade curve selection for one track. Control point only matters for custom."""

    mode: str = LOGARITHMIC
    control_x: float = 0.25
    control_y: float = 0.1

    def __post_init__(self):
        object.__setattr__(self, "mode", normalize_mode(self.mode))
        object.__setattr__(self, "control_x", _clamp_control(self.control_x))
        object.__setattr__(self, "control_y", _clamp_control(self.control_y))

    @property
    def control_point(self) -> ControlPoint:
        return (self.control_x, self.control_y)

    @classmethod
    def from_dict(cls, values: Optional[dict], default: "FadeSettings" = None) -> "FadeSettings":
        """Build settings from a config section, falling back to `default`."""
        base = default or cls()
        if not values:
            return base
        return cls(
            mode=values.get("mode", base.mode),
            control_x=values.get("control_x", base.control_x),
            control_y=values.get("control_y", base.control_y),
        )


# Editor defaults: track 1 fades in early, track 2 holds and drops late
DEFAULT_FADE_IN = FadeSettings(LOGARITHMIC, 0.25, 0.1)
DEFAULT_FADE_OUT = FadeSettings(LOGARITHMIC, 0.9, 0.9)


def logarithmic(t: np.ndarray) -> np.ndarray:
    """Slow start, fast finish."""
    return np.log1p(CURVE_K * t) / np.log1p(CURVE_K)


def exponential(t: np.ndarray) -> np.ndarray:
    """Fast start, slow finish."""
    return np.expm1(CURVE_K * t) / np.expm1(CURVE_K)


def warp_power(control_x: float) -> float:
    """
    Exponent of the custom-curve time warp.

    1.0 at control_x == 0.5, falling linearly to MIN_WARP_POWER as
    control_x approaches either edge.
    """
    if control_x < 0.5:
        factor = 1.0 - control_x / 0.5
    else:
        factor = (control_x - 0.5) / 0.5
    factor = min(1.0, max(0.0, factor))
    return 1.0 - factor * (1.0 - MIN_WARP_POWER)


def quadratic_bezier(t: np.ndarray, control_x: float, control_y: float,
                     is_fade_out: bool = False) -> np.ndarray:
    """
    Single-control-point quadratic Bezier, P0=(0,0), P1=(cx,cy), P2=(1,1).

    t is pre-warped so the control point's x position moves the steepest
    part of the curve: cx < 0.5 warps t -> t^p (steep start), cx >= 0.5
    warps the mirrored time (steep finish). The fade-out path uses the
    same warp; callers apply 1 - curve, which turns a steep start into an
    early drop and a steep finish into a late drop.
    """
    # is_fade_out selects the same warp: the complement is taken by the caller
    power = warp_power(control_x)
    if control_x < 0.5:
        warped = np.power(t, power)
    else:
        warped = 1.0 - np.power(1.0 - t, power)

    u = 1.0 - warped
    return 2.0 * u * warped * control_y + warped * warped


def fade_curve(mode: Optional[str], t: Union[float, np.ndarray],
               control_point: Optional[ControlPoint] = None,
               is_fade_out: bool = False) -> np.ndarray:
    """
    Vectorised curve evaluation.

    Args:
        mode: One of FADE_MODES (or alias). Unknown modes fall back to logarithmic.
        t: Normalised time(s); clamped to [0, 1]
        control_point: (control_x, control_y), required for custom
        is_fade_out: True when evaluating a fade-out

    Returns:
        Gains in [0, 1], same shape as t
    """
    tt = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    mode = normalize_mode(mode)

    if mode == LINEAR:
        return tt
    if mode == EXPONENTIAL:
        return exponential(tt)
    if mode == CUSTOM and control_point is not None:
        cx, cy = control_point
        return quadratic_bezier(tt, cx, cy, is_fade_out)
    return logarithmic(tt)


def evaluate(mode: Optional[str], t: float,
             control_point: Optional[ControlPoint] = None,
             is_fade_out: bool = False) -> float:
    """Scalar form of fade_curve()."""
    return float(fade_curve(mode, t, control_point, is_fade_out))


def settings_curve(settings: Optional[FadeSettings], t: np.ndarray,
                   is_fade_out: bool = False,
                   default: FadeSettings = DEFAULT_FADE_IN) -> np.ndarray:
    """Evaluate the curve described by `settings` (or `default` when None)."""
    settings = settings or default
    return fade_curve(settings.mode, t, settings.control_point, is_fade_out)
