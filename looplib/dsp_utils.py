"""
DSP utilities: RMS, interpolation, envelopes, clipping.
"""

import numpy as np

from looplib.logger import get_logger

logger = get_logger(__name__)


def windowed_rms(audio: np.ndarray, window_size: int) -> np.ndarray:
    """
    RMS of the window starting at every sample.

    Entry i is the RMS over audio[i:min(i + window_size, len(audio))], so
    windows near the end are shorter rather than zero-padded.

    Args:
        audio: Mono audio array
        window_size: Window length in samples (>= 1)

    Returns:
        Array of len(audio) RMS values
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    n = len(audio)
    if n == 0:
        return np.zeros(0)

    # Cumulative energy makes every window O(1)
    energy = np.concatenate(([0.0], np.cumsum(np.asarray(audio, dtype=np.float64) ** 2)))
    starts = np.arange(n)
    ends = np.minimum(starts + window_size, n)
    counts = ends - starts
    sums = np.maximum(energy[ends] - energy[starts], 0.0)
    return np.sqrt(sums / counts)


def linear_interpolate(audio: np.ndarray, positions: np.ndarray, limit: int = None) -> np.ndarray:
    """
    Read audio at fractional positions with linear interpolation.

    A position whose right neighbour lies at or beyond `limit` uses the
    floor sample alone; positions at or beyond `limit` read as silence.

    Args:
        audio: Mono audio array
        positions: Fractional read positions (>= 0)
        limit: Exclusive upper bound on readable indices (default: len(audio))

    Returns:
        Interpolated samples, same length as positions
    """
    n = len(audio) if limit is None else min(limit, len(audio))
    positions = np.asarray(positions, dtype=np.float64)
    if positions.size == 0:
        return np.zeros(0)
    if n <= 0:
        return np.zeros(positions.shape)

    index = np.floor(positions).astype(np.int64)
    fraction = positions - index

    left = audio[np.clip(index, 0, n - 1)]
    right = audio[np.clip(index + 1, 0, n - 1)]

    out = np.where(index + 1 < n, left * (1.0 - fraction) + right * fraction, left)
    return np.where(index < n, out, 0.0)


def block_envelope(audio: np.ndarray, step: int) -> np.ndarray:
    """
    Rectified-energy envelope: mean of |x| over consecutive blocks of `step`.

    Trailing samples that do not fill a whole block are ignored.
    """
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    size = len(audio) // step
    if size == 0:
        return np.zeros(0)
    blocks = np.abs(np.asarray(audio[: size * step], dtype=np.float64)).reshape(size, step)
    return blocks.mean(axis=1)


def hard_clip(audio: np.ndarray, limit: float = 1.0) -> np.ndarray:
    """Clip samples to [-limit, limit]."""
    return np.clip(audio, -limit, limit)
