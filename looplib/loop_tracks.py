"""
Loop track builders: construct the two crossfading loop tracks.

Track1 carries the loop head with a fade-in, Track2 carries loop-tail
material with a fade-out. Played together in a loop, Track2's energy
fades out while Track1's fades in, hiding the seam.

Two algorithms:
  - overlap: Track2 is the last r% of the use-range itself
  - tail: Track2 is post-roll taken from the original recording after
    the use-range end
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from looplib.buffer import (
    SampleBuffer,
    extract_range,
    mix_buffers,
    seconds_to_frames,
    truncate_buffer,
)
from looplib.fade_curves import (
    FadeSettings,
    DEFAULT_FADE_IN,
    DEFAULT_FADE_OUT,
    settings_curve,
)
from looplib.logger import get_logger
from looplib.exceptions import UnsupportedAlgorithm, InvalidParameter

logger = get_logger(__name__)

MAX_OVERLAP_RATE = 50.0

TRACK_NAMES = ("track1", "track2")


@dataclass(frozen=True)
class OverlapParams:
    """Overlap algorithm: fade length is `overlap_rate` percent of the use-range."""

    overlap_rate: float = 0.0

    def __post_init__(self):
        rate = float(min(MAX_OVERLAP_RATE, max(0.0, self.overlap_rate)))
        object.__setattr__(self, "overlap_rate", rate)


@dataclass(frozen=True)
class TailParams:
    """
    Tail algorithm: extend the loop by `tail_time` seconds of post-roll.

    use_range_end is a position in original_buffer; when original_buffer is
    None, Track2 falls back to the use-range itself starting at 0.
    """

    tail_time: float = 0.0
    use_range_duration: Optional[float] = None
    use_range_end: float = 0.0
    original_buffer: Optional[SampleBuffer] = None

    def __post_init__(self):
        object.__setattr__(self, "tail_time", float(max(0.0, self.tail_time)))


LoopParams = Union[OverlapParams, TailParams]


@dataclass(frozen=True)
class LoopTracks:
    """Result of build_loop()."""

    track1: SampleBuffer
    track2: SampleBuffer
    mixed: SampleBuffer
    loop_duration: float


def _unsupported(params) -> UnsupportedAlgorithm:
    return UnsupportedAlgorithm(
        "Unsupported loop algorithm parameters",
        context={"params_type": type(params).__name__}
    )


# Overlap algorithm

def overlap_track1(source: SampleBuffer, overlap_rate: float,
                   fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """
    Loop head: the first D*(1 - r/100) seconds, first D*r/100 faded in.

    Returns the source unmodified when overlap_rate is 0.
    """
    if overlap_rate == 0:
        return source

    sr = source.sample_rate
    cut_duration = source.duration * (overlap_rate / 100.0)
    keep_duration = source.duration - cut_duration
    if keep_duration <= 0:
        return source

    frame_count = seconds_to_frames(keep_duration, sr)
    end_sample = min(frame_count, source.frame_count)
    fade_frames = seconds_to_frames(cut_duration, sr)

    gain = np.ones(end_sample)
    if fade_frames > 0:
        n = min(fade_frames, end_sample)
        gain[:n] = settings_curve(fade_settings, np.arange(n) / fade_frames,
                                  default=DEFAULT_FADE_IN)

    out = np.zeros((source.channel_count, frame_count))
    out[:, :end_sample] = source.data[:, :end_sample] * gain
    return SampleBuffer(out, sr)


def overlap_track2(source: SampleBuffer, overlap_rate: float, target_duration: float,
                   fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """
    Loop tail: the last D*r/100 seconds faded out, zero-padded to `target_duration`.

    Silence of the target length when overlap_rate is 0.
    """
    sr = source.sample_rate
    frame_count = seconds_to_frames(target_duration, sr)
    if overlap_rate == 0:
        return SampleBuffer.silent(source.channel_count, frame_count, sr)

    cut_duration = source.duration * (overlap_rate / 100.0)
    start_sample = seconds_to_frames(source.duration - cut_duration, sr)
    end_sample = source.frame_count

    i = np.arange(frame_count)
    t_out = i / sr
    active = (t_out < cut_duration) & (start_sample + i < end_sample)
    n = int(np.count_nonzero(active))

    out = np.zeros((source.channel_count, frame_count))
    if n > 0 and cut_duration > 0:
        curve = settings_curve(fade_settings, t_out[:n] / cut_duration,
                               is_fade_out=True, default=DEFAULT_FADE_OUT)
        out[:, :n] = source.data[:, start_sample:start_sample + n] * (1.0 - curve)
    return SampleBuffer(out, sr)


# Tail algorithm

def tail_track1(source: SampleBuffer, tail_time: float,
                fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """
    Use-range plus `tail_time` seconds of silence, first min(tail, D) faded in.
    """
    sr = source.sample_rate
    total_frames = seconds_to_frames(source.duration + tail_time, sr)
    fade_frames = seconds_to_frames(min(tail_time, source.duration), sr)
    body_frames = min(source.frame_count, total_frames)

    gain = np.ones(body_frames)
    if fade_frames > 0:
        n = min(fade_frames, body_frames)
        gain[:n] = settings_curve(fade_settings, np.arange(n) / fade_frames,
                                  default=DEFAULT_FADE_IN)

    out = np.zeros((source.channel_count, total_frames))
    out[:, :body_frames] = source.data[:, :body_frames] * gain
    return SampleBuffer(out, sr)


def tail_track2(original: SampleBuffer, use_range_end: float, tail_time: float,
                target_duration: float,
                fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """
    Post-roll [use_range_end, use_range_end + tail_time) from the original
    recording, faded out over its real length and placed at the front of a
    `target_duration` buffer.
    """
    sr = original.sample_rate
    frame_count = seconds_to_frames(target_duration, sr)
    if tail_time == 0:
        return SampleBuffer.silent(original.channel_count, frame_count, sr)

    tail_start = use_range_end
    tail_end = min(original.duration, use_range_end + tail_time)
    actual_tail = max(0.0, tail_end - tail_start)
    fade_frames = min(seconds_to_frames(actual_tail, sr), frame_count)

    out = np.zeros((original.channel_count, frame_count))
    if fade_frames > 0:
        progress = np.arange(fade_frames) / seconds_to_frames(actual_tail, sr)
        source_index = np.floor((tail_start + progress * actual_tail) * sr).astype(np.int64)
        valid = (source_index >= 0) & (source_index < original.frame_count)
        gain = 1.0 - settings_curve(fade_settings, progress, is_fade_out=True,
                                    default=DEFAULT_FADE_OUT)
        samples = original.data[:, np.clip(source_index, 0, max(0, original.frame_count - 1))]
        out[:, :fade_frames] = np.where(valid, samples * gain, 0.0)
    return SampleBuffer(out, sr)


# Dispatch

def build_track1(use_range: SampleBuffer, params: LoopParams,
                 fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """Build the fade-in loop track for the selected algorithm."""
    if isinstance(params, OverlapParams):
        return overlap_track1(use_range, params.overlap_rate, fade_settings)

    if isinstance(params, TailParams):
        use_range_duration = params.use_range_duration or use_range.duration
        tail_time = min(params.tail_time, use_range_duration)
        return tail_track1(use_range, tail_time, fade_settings)

    raise _unsupported(params)


def build_track2(use_range: SampleBuffer, track1_duration: float, params: LoopParams,
                 fade_settings: Optional[FadeSettings] = None) -> SampleBuffer:
    """Build the fade-out loop track, `track1_duration` seconds long."""
    if isinstance(params, OverlapParams):
        return overlap_track2(use_range, params.overlap_rate, track1_duration, fade_settings)

    if isinstance(params, TailParams):
        original = params.original_buffer
        if original is None:
            use_range_duration = params.use_range_duration or use_range.duration
            tail_time = min(params.tail_time, use_range_duration)
            return tail_track2(use_range, 0.0, tail_time, track1_duration, fade_settings)

        remaining = original.duration - params.use_range_end
        tail_time = max(0.0, min(params.tail_time, track1_duration, remaining))
        return tail_track2(original, params.use_range_end, tail_time,
                           track1_duration, fade_settings)

    raise _unsupported(params)


def fade_range_info(track: str, params: LoopParams, track_duration: float) -> Tuple[float, float]:
    """
    Fade region of a track as fractions of its duration.

    Returns:
        (fade_start_x, fade_width), both in [0, 1]; the fade always starts at 0
    """
    if track not in TRACK_NAMES:
        raise InvalidParameter("Unknown track name", context={"track": track})

    if isinstance(params, OverlapParams):
        rate = params.overlap_rate
        if rate <= 0:
            return (0.0, 0.0)
        width = rate / (100.0 - rate)
        return (0.0, float(min(1.0, max(0.0, width))))

    if isinstance(params, TailParams):
        if params.tail_time <= 0 or track_duration <= 0:
            return (0.0, 0.0)
        width = min(1.0, params.tail_time / track_duration)
        return (0.0, float(min(1.0, max(0.0, width))))

    raise _unsupported(params)


def render_options(params: LoopParams, use_range_duration: float) -> dict:
    """Display hints for waveform views of the loop tracks."""
    if isinstance(params, OverlapParams):
        return {
            "loop_algorithm": "overlap",
            "show_tail_section": False,
        }

    if isinstance(params, TailParams):
        return {
            "loop_algorithm": "tail",
            "tail_time": params.tail_time,
            "use_range_duration": use_range_duration,
            "show_tail_section": True,
        }

    raise _unsupported(params)


def build_loop(original: SampleBuffer, start_time: float, end_time: float,
               params: LoopParams,
               fade_track1: Optional[FadeSettings] = None,
               fade_track2: Optional[FadeSettings] = None) -> LoopTracks:
    """
    Run the full loop pipeline on a recording.

    Extracts the use-range, builds both tracks, mixes them and (tail
    algorithm) truncates the mix back to the use-range length.

    Args:
        original: Full recording
        start_time: Use-range start (seconds)
        end_time: Use-range end (seconds)
        params: OverlapParams or TailParams; tail params get the use-range
                duration, end and original buffer filled in here
        fade_track1: Fade-in settings (default: logarithmic)
        fade_track2: Fade-out settings (default: logarithmic)

    Returns:
        LoopTracks with both tracks, the mix and the loop duration
    """
    use_range = extract_range(original, start_time, end_time)
    use_range_duration = end_time - start_time

    if isinstance(params, TailParams):
        params = TailParams(
            tail_time=params.tail_time,
            use_range_duration=use_range_duration,
            use_range_end=end_time,
            original_buffer=original,
        )

    track1 = build_track1(use_range, params, fade_track1)
    track2 = build_track2(use_range, track1.duration, params, fade_track2)
    mixed = mix_buffers(track1, track2)

    if isinstance(params, TailParams):
        mixed = truncate_buffer(mixed, use_range_duration)
        loop_duration = use_range_duration
    else:
        loop_duration = track1.duration

    logger.debug(
        f"Built {type(params).__name__} loop: track1={track1.frame_count} frames, "
        f"track2={track2.frame_count} frames, mix={mixed.frame_count} frames"
    )
    return LoopTracks(track1=track1, track2=track2, mixed=mixed, loop_duration=loop_duration)
