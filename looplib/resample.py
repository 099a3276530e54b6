"""
Resampling engine: linear-interpolation rate change, and a silence-aware
variant that stretches or squeezes silent passages to win back the
duration the rate change added or removed.

A rate of 0.7 plays 0.7x as fast, so the output is 1/0.7 times longer.
"""

import math
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Tuple

import numpy as np

from looplib import dsp_utils
from looplib.buffer import SampleBuffer
from looplib.logger import get_logger
from looplib.exceptions import InvalidParameter, UnsupportedAlgorithm

logger = get_logger(__name__)

SIMPLE = "simple"
SILENCE_CUT = "silence-cut"

# |rate - 1| below this is treated as no change
IDENTITY_EPSILON = 0.001

MIN_SILENCE_RATE_LIMIT = 0.001
MAX_SILENCE_RATE_LIMIT = 256.0

# Silence ramp shape: progress exponent and correction-factor blend
RAMP_EXPONENT = 1.5
CORRECTION_BASE = 0.3
CORRECTION_SPAN = 0.7

MIN_CHUNK_SIZE = 128


class RateHistory:
    """
    Effective playback rate per output frame (channel 0).

    Stored as parallel arrays; indexing and iteration yield (time, rate).
    """

    def __init__(self, times: np.ndarray, rates: np.ndarray):
        self.times = np.asarray(times, dtype=np.float64)
        self.rates = np.asarray(rates, dtype=np.float64)
        if self.times.shape != self.rates.shape:
            raise InvalidParameter(
                "RateHistory times and rates must have the same length",
                context={"times": self.times.shape, "rates": self.rates.shape}
            )

    @classmethod
    def from_rates(cls, rates: np.ndarray, sample_rate: int) -> "RateHistory":
        rates = np.asarray(rates, dtype=np.float64)
        return cls(np.arange(len(rates)) / sample_rate, rates)

    def __len__(self) -> int:
        return len(self.rates)

    def __getitem__(self, index: int) -> Tuple[float, float]:
        return (float(self.times[index]), float(self.rates[index]))

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        for time, rate in zip(self.times, self.rates):
            yield (float(time), float(rate))


@dataclass(frozen=True)
class ResampleResult:
    buffer: SampleBuffer
    rate_history: Optional[RateHistory]


@dataclass(frozen=True)
class SilenceCutConfig:
    """
    Tuning of the silence-aware resampler.

    Immutable: the with_* helpers clamp like the editor controls do and
    return a new config.
    """

    min_silence_rate: float = 1.0
    max_silence_rate: float = 4.0
    silence_correction_strength: float = 0.5
    silence_threshold: float = 0.01
    window_size: int = 1024

    def __post_init__(self):
        problems = {}
        for name in ("min_silence_rate", "max_silence_rate"):
            value = getattr(self, name)
            if not (MIN_SILENCE_RATE_LIMIT <= value <= MAX_SILENCE_RATE_LIMIT):
                problems[name] = value
        if self.min_silence_rate > self.max_silence_rate:
            problems["min>max"] = (self.min_silence_rate, self.max_silence_rate)
        if self.silence_correction_strength < 0:
            problems["silence_correction_strength"] = self.silence_correction_strength
        if self.silence_threshold < 0:
            problems["silence_threshold"] = self.silence_threshold
        if int(self.window_size) < 1:
            problems["window_size"] = self.window_size
        if problems:
            raise InvalidParameter("Invalid silence-cut configuration", context=problems)
        object.__setattr__(self, "window_size", int(self.window_size))

    @classmethod
    def from_dict(cls, values: Optional[dict]) -> "SilenceCutConfig":
        """Build a config from the `resample.silence_cut` section (missing keys use defaults)."""
        values = values or {}
        defaults = cls()
        return cls(
            min_silence_rate=values.get("min_silence_rate", defaults.min_silence_rate),
            max_silence_rate=values.get("max_silence_rate", defaults.max_silence_rate),
            silence_correction_strength=values.get(
                "silence_correction_strength", defaults.silence_correction_strength
            ),
            silence_threshold=values.get("silence_threshold", defaults.silence_threshold),
            window_size=values.get("window_size", defaults.window_size),
        )

    def with_cut_ratios(self, min_silence_rate: float, max_silence_rate: float) -> "SilenceCutConfig":
        low = max(MIN_SILENCE_RATE_LIMIT, min(MAX_SILENCE_RATE_LIMIT, min_silence_rate))
        high = max(MIN_SILENCE_RATE_LIMIT, min(MAX_SILENCE_RATE_LIMIT, max_silence_rate))
        return replace(self, min_silence_rate=min(low, high), max_silence_rate=high)

    def with_max_silence_rate(self, max_silence_rate: float) -> "SilenceCutConfig":
        return self.with_cut_ratios(self.min_silence_rate, max_silence_rate)

    def with_correction_strength(self, strength: float) -> "SilenceCutConfig":
        return replace(self, silence_correction_strength=max(0.0, strength))


def _is_identity(buffer: Optional[SampleBuffer], rate: float) -> bool:
    return buffer is None or rate <= 0 or abs(rate - 1.0) < IDENTITY_EPSILON


def resample_simple(buffer: SampleBuffer, rate: float) -> ResampleResult:
    """
    Uniform rate change by linear interpolation.

    Output length is floor(frames / rate); output frame i reads the source
    at position i * rate.

    Args:
        buffer: Input audio
        rate: Playback-rate multiplier (> 0)

    Returns:
        ResampleResult with a flat rate history, or the input and None for
        rate <= 0, a missing buffer, or rate == 1.0
    """
    if _is_identity(buffer, rate):
        return ResampleResult(buffer, None)

    n = buffer.frame_count
    new_length = int(math.floor(n / rate))
    positions = np.arange(new_length) * rate

    out = np.zeros((buffer.channel_count, new_length))
    for channel in range(buffer.channel_count):
        out[channel] = dsp_utils.linear_interpolate(buffer.channel(channel), positions)

    history = RateHistory.from_rates(np.full(new_length, float(rate)), buffer.sample_rate)
    logger.debug(f"Simple resample x{rate:.3f}: {n} -> {new_length} frames")
    return ResampleResult(SampleBuffer(out, buffer.sample_rate), history)


def correction_factor(resampled_length: int, target_length: int, strength: float) -> float:
    """
    How quickly silence ramps reach their extreme rate.

    Grows with the relative length mismatch (capped at 1) and the
    configured correction strength.
    """
    if target_length <= 0:
        relative = 0.0
    else:
        relative = min(abs(resampled_length - target_length) / target_length, 1.0)
    return CORRECTION_BASE + (relative * CORRECTION_SPAN) * (1.0 + strength)


def silence_rate(progress: float, factor: float, config: SilenceCutConfig, lengthen: bool) -> float:
    """
    Local rate of a chunk at fractional position `progress` in its silence run.

    lengthen=True ramps from 1.0 down toward min_silence_rate (the silence
    plays slower and grows); otherwise it ramps from min_silence_rate up
    toward max_silence_rate (the silence shrinks).
    """
    ratio = min((progress ** RAMP_EXPONENT) * factor, 1.0)
    if lengthen:
        floor_rate = max(MIN_SILENCE_RATE_LIMIT, config.min_silence_rate)
        return 1.0 - ratio * (1.0 - floor_rate)
    return config.min_silence_rate + ratio * (config.max_silence_rate - config.min_silence_rate)


def silence_runs(audio: np.ndarray, threshold: float, window_size: int) -> List[Tuple[int, int]]:
    """
    Split a channel into runs, walking from the start.

    At a position whose window RMS (over window_size samples) is below
    threshold a silence run starts one full window long; it grows a window
    at a time while the next window is also silent, and growth stops at the
    channel end. A run starting within window_size samples of the end
    therefore reaches past it, and the stretch reads silence there.

    Returns:
        List of (start, end) sample ranges of silence, in order; the last
        end may exceed len(audio)
    """
    n = len(audio)
    if n == 0:
        return []

    silent = dsp_utils.windowed_rms(audio, window_size) < threshold
    silent_positions = np.flatnonzero(silent)

    runs = []
    position = 0
    while position < n:
        k = np.searchsorted(silent_positions, position)
        if k >= len(silent_positions):
            break
        start = int(silent_positions[k])
        end = start + window_size
        while end < n and silent[end]:
            end = min(end + window_size, n)
        runs.append((start, end))
        position = end
    return runs


def _stretch_channel(audio: np.ndarray, rate: float, config: SilenceCutConfig,
                     factor: float, lengthen: bool) -> Tuple[np.ndarray, np.ndarray]:
    """Re-time the silence runs of one channel; returns (samples, per-sample rates)."""
    n = len(audio)
    chunk_size = max(MIN_CHUNK_SIZE, config.window_size // 4)

    pieces = []
    rates = []
    position = 0
    for start, end in silence_runs(audio, config.silence_threshold, config.window_size):
        if start > position:
            pieces.append(audio[position:start])
            rates.append(np.full(start - position, float(rate)))

        run_length = end - start
        processed = 0
        while processed < run_length:
            size = min(chunk_size, run_length - processed)
            local_rate = silence_rate(processed / run_length, factor, config, lengthen)
            out_length = int(math.floor(size / local_rate))

            if out_length > 0:
                chunk_start = start + processed
                positions = chunk_start + (np.arange(out_length) / out_length) * size
                pieces.append(dsp_utils.linear_interpolate(audio, positions, limit=chunk_start + size))
                rates.append(np.full(out_length, rate * local_rate))

            processed += size
        position = end

    if position < n:
        pieces.append(audio[position:])
        rates.append(np.full(n - position, float(rate)))

    if not pieces:
        return np.zeros(0), np.zeros(0)
    return np.concatenate(pieces), np.concatenate(rates)


def resample_silence_cut(buffer: SampleBuffer, rate: float,
                         config: Optional[SilenceCutConfig] = None) -> ResampleResult:
    """
    Rate change that re-times silences to pull the length back toward the original.

    The buffer is first resampled uniformly at `rate`. Non-silent audio is
    then kept as is, while every silent run is resampled in chunks at a
    rate ramping with the run's progress^1.5:
      - output shorter than the input: silences slow down (ramp 1.0 -> min)
      - output longer than the input: silences speed up (ramp min -> max)

    Each channel is segmented on its own; the rate history follows channel 0.

    Args:
        buffer: Input audio
        rate: Playback-rate multiplier (> 0)
        config: Silence detection and ramp settings (default SilenceCutConfig())

    Returns:
        ResampleResult; the output length is whatever the chunks add up to,
        shorter channels are zero-padded
    """
    if _is_identity(buffer, rate):
        return ResampleResult(buffer, None)

    config = config or SilenceCutConfig()
    resampled = resample_simple(buffer, rate).buffer

    target_length = buffer.frame_count
    resampled_length = resampled.frame_count
    lengthen = resampled_length <= target_length
    factor = correction_factor(resampled_length, target_length, config.silence_correction_strength)

    channels = []
    history_rates = None
    for channel in range(resampled.channel_count):
        samples, rates = _stretch_channel(resampled.channel(channel), rate, config, factor, lengthen)
        channels.append(samples)
        if channel == 0:
            history_rates = rates

    length = max(len(samples) for samples in channels)
    out = np.zeros((resampled.channel_count, length))
    for channel, samples in enumerate(channels):
        out[channel, : len(samples)] = samples

    logger.debug(
        f"Silence-cut resample x{rate:.3f}: {target_length} -> {resampled_length} -> {length} frames "
        f"({'lengthen' if lengthen else 'shorten'}, factor={factor:.3f})"
    )
    history = RateHistory.from_rates(history_rates, buffer.sample_rate)
    return ResampleResult(SampleBuffer(out, buffer.sample_rate), history)


_ALGORITHM_LABELS = {
    SIMPLE: "Simple resample",
    SILENCE_CUT: "Resample and re-time silences to keep the length",
}


def available_algorithms() -> List[Tuple[str, str]]:
    """(value, label) pairs of the resample algorithms."""
    return list(_ALGORITHM_LABELS.items())


def resample(buffer: SampleBuffer, rate: float, algorithm: str = SIMPLE,
             config: Optional[SilenceCutConfig] = None) -> ResampleResult:
    """Resample with the algorithm named `algorithm` ("simple" or "silence-cut")."""
    if algorithm == SIMPLE:
        return resample_simple(buffer, rate)
    if algorithm == SILENCE_CUT:
        return resample_silence_cut(buffer, rate, config)
    raise UnsupportedAlgorithm(
        "Unknown resample algorithm",
        context={"algorithm": algorithm, "available": ", ".join(_ALGORITHM_LABELS)}
    )
