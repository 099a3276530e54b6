"""
Duration auto-correction for the silence-cut resampler.

Repeatedly resamples with a SilenceCutConfig, measures how far the output
duration is from a target, and derives the next config:
  - before the target has been crossed, take aggressive steps sized by the
    relative error and decaying with the iteration count
  - once configs on both sides of the target exist, bisect between the
    latest too-long and too-short configs

The search is a heuristic. Audio with no silence cannot be corrected, so
running out of iterations is reported as a residual, not raised.
"""

from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional

from looplib.buffer import SampleBuffer
from looplib.resample import (
    SilenceCutConfig,
    RateHistory,
    resample_silence_cut,
    MIN_SILENCE_RATE_LIMIT,
    MAX_SILENCE_RATE_LIMIT,
)
from looplib.logger import get_logger, log_success
from looplib.exceptions import InvalidParameter

logger = get_logger(__name__)

DEFAULT_TOLERANCE = 0.01
DEFAULT_MAX_ITERATIONS = 20

# Step multipliers: iterations 1-3, 4-8, then refinement
AGGRESSIVENESS_EARLY = 10.0
AGGRESSIVENESS_MID = 5.0
AGGRESSIVENESS_LATE = 2.0

MAX_CORRECTION_STRENGTH = 1000.0


@dataclass(frozen=True)
class ConvergenceStep:
    """One measured iteration of the search."""

    iteration: int
    config: SilenceCutConfig
    buffer: SampleBuffer
    rate_history: Optional[RateHistory]
    duration: float
    duration_diff: float
    converged: bool


@dataclass(frozen=True)
class ConvergenceResult:
    """Best outcome of auto_correct()."""

    buffer: SampleBuffer
    rate_history: Optional[RateHistory]
    config: SilenceCutConfig
    duration: float
    target_duration: float
    residual: float
    initial_residual: float
    iterations: int
    converged: bool


def aggressiveness(iteration: int) -> float:
    """Step multiplier for a 1-based iteration number."""
    if iteration <= 3:
        return AGGRESSIVENESS_EARLY
    if iteration <= 8:
        return AGGRESSIVENESS_MID
    return AGGRESSIVENESS_LATE


def clamp_config(min_rate: float, max_rate: float, strength: float,
                 base: SilenceCutConfig) -> SilenceCutConfig:
    """Clamp rates into [0.001, 256], strength into [0, 1000], and restore min <= max."""
    min_rate = max(MIN_SILENCE_RATE_LIMIT, min(MAX_SILENCE_RATE_LIMIT, min_rate))
    max_rate = max(MIN_SILENCE_RATE_LIMIT, min(MAX_SILENCE_RATE_LIMIT, max_rate))
    if min_rate > max_rate:
        max_rate = min_rate
    strength = max(0.0, min(MAX_CORRECTION_STRENGTH, strength))
    return replace(
        base,
        min_silence_rate=min_rate,
        max_silence_rate=max_rate,
        silence_correction_strength=strength,
    )


def step_config(config: SilenceCutConfig, too_long: bool, step: float) -> SilenceCutConfig:
    """
    Push a config toward a shorter (too_long) or longer output.

    Too long: raise max_silence_rate and the correction strength, keep
    min_silence_rate >= 1.0. Too short: lower min_silence_rate and raise the
    correction strength; max_silence_rate only moves to stay above min.
    """
    if too_long:
        return clamp_config(
            max(1.0, config.min_silence_rate),
            config.max_silence_rate * (1.0 + step),
            config.silence_correction_strength + step,
            config,
        )
    return clamp_config(
        config.min_silence_rate / (1.0 + step),
        config.max_silence_rate,
        config.silence_correction_strength + step,
        config,
    )


def average_config(a: SilenceCutConfig, b: SilenceCutConfig) -> SilenceCutConfig:
    """Midpoint of two configs' tunable parameters."""
    return clamp_config(
        (a.min_silence_rate + b.min_silence_rate) / 2.0,
        (a.max_silence_rate + b.max_silence_rate) / 2.0,
        (a.silence_correction_strength + b.silence_correction_strength) / 2.0,
        a,
    )


def iter_convergence(buffer: SampleBuffer, rate: float, target_duration: float,
                     config: Optional[SilenceCutConfig] = None,
                     tolerance: float = DEFAULT_TOLERANCE,
                     max_iterations: int = DEFAULT_MAX_ITERATIONS) -> Iterator[ConvergenceStep]:
    """
    Run the search lazily, yielding after every measured iteration.

    Stops after a step within `tolerance` or after `max_iterations` steps.
    Each step carries its own immutable config, so a caller can stop at any
    point and keep whichever step it likes.
    """
    if target_duration <= 0:
        raise InvalidParameter(
            "Target duration must be positive",
            context={"target_duration": target_duration}
        )
    if max_iterations < 1:
        raise InvalidParameter(
            "max_iterations must be >= 1",
            context={"max_iterations": max_iterations}
        )

    current = config or SilenceCutConfig()
    too_long_config = None
    too_short_config = None

    for iteration in range(1, max_iterations + 1):
        result = resample_silence_cut(buffer, rate, current)
        duration = result.buffer.duration
        diff = duration - target_duration
        converged = abs(diff) < tolerance

        logger.debug(
            f"Auto-correct #{iteration}: duration={duration:.4f}s diff={diff:+.4f}s "
            f"min={current.min_silence_rate:.4f} max={current.max_silence_rate:.4f} "
            f"strength={current.silence_correction_strength:.4f}"
        )

        yield ConvergenceStep(
            iteration=iteration,
            config=current,
            buffer=result.buffer,
            rate_history=result.rate_history,
            duration=duration,
            duration_diff=diff,
            converged=converged,
        )

        if converged:
            return

        too_long = diff > 0
        if too_long:
            too_long_config = current
        else:
            too_short_config = current

        if too_long_config is not None and too_short_config is not None:
            # Target crossed: bisect between the bracketing configs
            current = average_config(too_long_config, too_short_config)
        else:
            relative_error = min(abs(diff) / target_duration, 1.0)
            current = step_config(current, too_long, relative_error * aggressiveness(iteration))


def auto_correct(buffer: SampleBuffer, rate: float, target_duration: float,
                 config: Optional[SilenceCutConfig] = None,
                 tolerance: float = DEFAULT_TOLERANCE,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 progress_callback: Optional[Callable[[ConvergenceStep], None]] = None) -> ConvergenceResult:
    """
    Tune the silence-cut resampler until the output lasts `target_duration`.

    Args:
        buffer: Input audio
        rate: Playback-rate multiplier
        target_duration: Desired output duration in seconds (usually the input's)
        config: Starting configuration (default SilenceCutConfig())
        tolerance: Acceptable |actual - target| in seconds
        max_iterations: Iteration budget
        progress_callback: Called with every ConvergenceStep

    Returns:
        ConvergenceResult for the converged step, or for the step with the
        smallest residual when the budget runs out

    Raises:
        InvalidParameter: If target_duration <= 0 or max_iterations < 1
    """
    best = None
    first = None
    iterations = 0

    for step in iter_convergence(buffer, rate, target_duration, config, tolerance, max_iterations):
        iterations = step.iteration
        if first is None:
            first = step
        if best is None or abs(step.duration_diff) < abs(best.duration_diff):
            best = step
        if progress_callback is not None:
            progress_callback(step)

    if best.converged:
        log_success(
            logger,
            f"Duration converged in {iterations} iteration(s): "
            f"{best.duration:.3f}s (target {target_duration:.3f}s)"
        )
    else:
        logger.warning(
            f"Duration did not converge in {iterations} iteration(s); "
            f"best residual {best.duration_diff:+.3f}s"
        )

    return ConvergenceResult(
        buffer=best.buffer,
        rate_history=best.rate_history,
        config=best.config,
        duration=best.duration,
        target_duration=target_duration,
        residual=best.duration_diff,
        initial_residual=first.duration_diff,
        iterations=iterations,
        converged=best.converged,
    )
