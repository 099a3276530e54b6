"""
Tempo estimation from a rectified-energy envelope.

The envelope is sampled at roughly 200 Hz, mean-removed and
autocorrelated; the strongest lag between 40 and 240 BPM wins.
"""

import math
from typing import Optional

import numpy as np
from scipy import signal

from looplib.buffer import SampleBuffer
from looplib.dsp_utils import block_envelope
from looplib.logger import get_logger

logger = get_logger(__name__)

ENVELOPE_RATE = 200  # Hz
MIN_ANALYSIS_SECONDS = 0.5
MAX_ANALYSIS_SECONDS = 30.0
MIN_ENVELOPE_POINTS = 10

# Mean removal of a constant envelope leaves rounding noise, not zeros
FLAT_ENERGY = 1e-18

MIN_SEARCH_BPM = 40.0
MAX_SEARCH_BPM = 240.0
MIN_RESULT_BPM = 20.0
MAX_RESULT_BPM = 300.0


def autocorrelation(envelope: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
    """
    Unnormalised autocorrelation for lags min_lag..max_lag inclusive.

    Lags at or past the envelope length have nothing to overlap and score 0.
    """
    size = len(envelope)
    full = signal.correlate(envelope, envelope, mode="full")
    # full[size - 1 + k] is the lag-k sum
    lags = np.arange(min_lag, max_lag + 1)
    scores = np.zeros(len(lags))
    in_range = lags < size
    scores[in_range] = full[size - 1 + lags[in_range]]
    return scores


def estimate_bpm(buffer: SampleBuffer, start_time: float, end_time: float) -> Optional[float]:
    """
    Estimate the tempo of [start_time, end_time) in channel 0.

    Args:
        buffer: Audio to analyse
        start_time: Range start (seconds), clamped to >= 0
        end_time: Range end (seconds), clamped to the buffer duration

    Returns:
        BPM in [20, 300], or None when the range is shorter than 0.5 s,
        yields fewer than 10 envelope points, or has a flat envelope
    """
    if buffer is None or buffer.frame_count == 0:
        return None

    sr = buffer.sample_rate
    start = max(0.0, start_time)
    end = min(buffer.duration, end_time)
    start_sample = int(math.floor(start * sr))
    end_sample = int(math.floor(end * sr))
    length = end_sample - start_sample

    if length < int(math.floor(sr * MIN_ANALYSIS_SECONDS)):
        logger.debug(f"BPM: range too short ({length} samples)")
        return None
    length = min(length, int(math.floor(sr * MAX_ANALYSIS_SECONDS)))

    step = max(1, sr // ENVELOPE_RATE)
    envelope = block_envelope(buffer.channel(0)[start_sample:start_sample + length], step)
    if len(envelope) < MIN_ENVELOPE_POINTS:
        return None

    envelope = envelope - envelope.mean()
    if float(np.dot(envelope, envelope)) <= FLAT_ENERGY:
        logger.debug("BPM: flat envelope")
        return None

    envelope_rate = sr / step
    min_lag = int(math.floor(envelope_rate * 60.0 / MAX_SEARCH_BPM))
    max_lag = int(math.floor(envelope_rate * 60.0 / MIN_SEARCH_BPM))

    scores = autocorrelation(envelope, min_lag, max_lag)
    best_lag = min_lag + int(np.argmax(scores))
    if best_lag <= 0:
        return None

    bpm = 60.0 * envelope_rate / best_lag
    if not math.isfinite(bpm) or bpm <= 0:
        return None

    bpm = float(min(MAX_RESULT_BPM, max(MIN_RESULT_BPM, bpm)))
    logger.debug(f"BPM: lag={best_lag} envelope_rate={envelope_rate:.2f}Hz -> {bpm:.2f}")
    return bpm
