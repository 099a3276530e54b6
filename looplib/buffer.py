"""
SampleBuffer: immutable multichannel PCM, plus range extraction, mixing
and truncation.

Samples are stored as float64 arrays shaped (channels, frames), the same
channel-first layout librosa.load(mono=False) returns.
"""

import math

import numpy as np

from looplib import dsp_utils
from looplib.logger import get_logger
from looplib.exceptions import InvalidParameter

logger = get_logger(__name__)


def seconds_to_frames(seconds: float, sample_rate: int) -> int:
    """
    Convert a duration to a whole number of frames (floor).

    Products within 1e-6 of an integer snap to it, so a buffer's own
    duration always maps back to its frame count.
    """
    exact = seconds * sample_rate
    nearest = round(exact)
    if abs(exact - nearest) < 1e-6:
        return max(0, int(nearest))
    return max(0, int(math.floor(exact)))


class SampleBuffer:
    """
    Multichannel PCM audio held in memory.

    Treated as a value: the sample array is marked read-only and every
    transform in looplib returns a new buffer.
    """

    def __init__(self, data: np.ndarray, sample_rate: int):
        """
        Args:
            data: (frames,) for mono or (channels, frames)
            sample_rate: Sample rate in Hz

        Raises:
            InvalidParameter: If the sample rate or array shape is invalid
        """
        if not isinstance(sample_rate, (int, np.integer)) or sample_rate <= 0:
            raise InvalidParameter(
                "Sample rate must be a positive integer",
                context={"sample_rate": sample_rate}
            )

        array = np.array(data, dtype=np.float64)
        if array.ndim == 1:
            array = array[np.newaxis, :]
        if array.ndim != 2 or array.shape[0] < 1:
            raise InvalidParameter(
                "Sample data must be shaped (frames,) or (channels, frames)",
                context={"shape": array.shape}
            )

        array.flags.writeable = False
        self._data = array
        self._sample_rate = int(sample_rate)

    @classmethod
    def silent(cls, channels: int, frames: int, sample_rate: int) -> "SampleBuffer":
        """Create an all-zero buffer."""
        return cls(np.zeros((max(1, channels), max(0, frames))), sample_rate)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return self._data.shape[0]

    @property
    def frame_count(self) -> int:
        return self._data.shape[1]

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frame_count / self._sample_rate

    def channel(self, index: int) -> np.ndarray:
        """Read-only view of one channel."""
        return self._data[index]

    def __len__(self) -> int:
        return self.frame_count

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(channels={self.channel_count}, frames={self.frame_count}, "
            f"sample_rate={self._sample_rate})"
        )


def extract_range(buffer: SampleBuffer, start_time: float, end_time: float) -> SampleBuffer:
    """
    Copy [start_time, end_time) seconds into a new buffer.

    Invalid ranges (start < 0, end past the buffer, start >= end) are a
    no-op: the input buffer is returned unchanged.

    Args:
        buffer: Source buffer
        start_time: Range start in seconds
        end_time: Range end in seconds

    Returns:
        Extracted buffer, zero-padded past the source end
    """
    if buffer is None or start_time < 0 or end_time > buffer.duration or start_time >= end_time:
        logger.debug(f"extract_range: ignoring invalid range [{start_time}, {end_time})")
        return buffer

    sr = buffer.sample_rate
    frame_count = seconds_to_frames(end_time - start_time, sr)
    start_sample = seconds_to_frames(start_time, sr)
    end_sample = seconds_to_frames(end_time, sr)

    out = np.zeros((buffer.channel_count, frame_count))
    stop = min(start_sample + frame_count, end_sample, buffer.frame_count)
    if stop > start_sample:
        out[:, : stop - start_sample] = buffer.data[:, start_sample:stop]

    return SampleBuffer(out, sr)


def mix_buffers(a: SampleBuffer, b: SampleBuffer) -> SampleBuffer:
    """
    Sum two buffers sample by sample and hard-clip to [-1, 1].

    The shorter buffer is zero-padded. Sample rate and channel count come
    from `a`; channels `b` lacks are treated as silence.
    """
    length = max(a.frame_count, b.frame_count)
    mixed = np.zeros((a.channel_count, length))
    mixed[:, : a.frame_count] += a.data

    shared = min(a.channel_count, b.channel_count)
    mixed[:shared, : b.frame_count] += b.data[:shared]

    return SampleBuffer(dsp_utils.hard_clip(mixed), a.sample_rate)


def truncate_buffer(buffer: SampleBuffer, max_duration: float) -> SampleBuffer:
    """Keep at most the first `max_duration` seconds."""
    if buffer is None or max_duration <= 0:
        return buffer

    if buffer.duration <= max_duration:
        return buffer

    frame_count = seconds_to_frames(max_duration, buffer.sample_rate)
    return SampleBuffer(buffer.data[:, :frame_count], buffer.sample_rate)
