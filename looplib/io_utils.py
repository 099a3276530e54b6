"""
File I/O utilities: loading audio, 16-bit WAV encoding and saving.
"""

import io
import os
from pathlib import Path
from typing import Optional

import librosa
import soundfile as sf
import numpy as np

from looplib.buffer import SampleBuffer
from looplib.logger import get_logger
from looplib.exceptions import (
    AudioError,
    EmptyBuffer,
    FilesystemError,
    DiskFullError,
    PermissionError as LooplibPermissionError,
)

logger = get_logger(__name__)

SUBTYPE = "PCM_16"

NEGATIVE_SCALE = 32768.0
POSITIVE_SCALE = 32767.0


def load_audio(filepath: str) -> SampleBuffer:
    """
    Decode an audio file at its native sample rate, keeping every channel.

    Args:
        filepath: Path to audio file

    Returns:
        SampleBuffer shaped (channels, frames)

    Raises:
        FileNotFoundError: If the file does not exist
        EmptyBuffer: If the file decodes to zero samples
        AudioError: If the file is corrupt or contains invalid data
    """
    if not os.path.exists(filepath):
        logger.error(f"File not found: {filepath}")
        raise FileNotFoundError(f"Audio file not found: {filepath}")

    try:
        y, sr = librosa.load(filepath, sr=None, mono=False)
    except Exception as e:
        logger.warning(f"Failed to load {filepath}: {e}")
        raise AudioError(
            "Could not load audio file",
            context={"filepath": filepath, "error": str(e)}
        ) from e

    if y is None or y.size == 0:
        raise EmptyBuffer(
            "Loaded audio is empty",
            context={"filepath": filepath}
        )

    if not np.all(np.isfinite(y)):
        raise AudioError(
            "Audio contains NaN or infinite values",
            context={"filepath": filepath}
        )

    buffer = SampleBuffer(y, int(sr))
    logger.debug(f"Loaded {filepath}: {buffer}")
    return buffer


def to_pcm16(data: np.ndarray) -> np.ndarray:
    """
    Quantise float samples to int16.

    Samples are clipped to [-1, 1]; negatives scale by 32768 and
    positives by 32767 so both extremes stay representable.
    """
    clipped = np.clip(data, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * NEGATIVE_SCALE, clipped * POSITIVE_SCALE)
    return np.round(scaled).astype(np.int16)


def _pcm_frames(buffer: SampleBuffer) -> np.ndarray:
    """(frames, channels) int16 samples ready for soundfile."""
    if np.any(np.isnan(buffer.data)):
        logger.error("Audio contains NaN values")
        raise AudioError(
            "Audio contains NaN values",
            context={"frames": buffer.frame_count}
        )
    return to_pcm16(buffer.data).T


def encode_wav(buffer: SampleBuffer) -> bytes:
    """
    Encode a buffer as an in-memory 16-bit PCM WAV file.

    Args:
        buffer: Audio to encode; channels are interleaved frame by frame

    Returns:
        Complete WAV file image (RIFF header plus sample data)

    Raises:
        AudioError: If the buffer contains NaN values
    """
    out = io.BytesIO()
    sf.write(out, _pcm_frames(buffer), buffer.sample_rate, format="WAV", subtype=SUBTYPE)
    return out.getvalue()


def _export_root() -> Optional[Path]:
    root = os.environ.get("LOOPLIB_EXPORT_ROOT")
    if not root:
        return None
    return Path(root).resolve()


def save_wav(filepath: str, buffer: SampleBuffer) -> str:
    """
    Write a buffer to disk as 16-bit PCM WAV.

    Args:
        filepath: Output path (parent directories are created)
        buffer: Audio to write

    Returns:
        Resolved path of the written file

    Raises:
        AudioError: If the buffer contains NaN values
        PermissionError: If LOOPLIB_EXPORT_ROOT is set and the path lies
                         outside it, or the OS denies the write
        DiskFullError: If the device runs out of space
        FilesystemError: For any other write failure
    """
    abs_path = Path(filepath).resolve()

    export_root = _export_root()
    if export_root is not None and not abs_path.is_relative_to(export_root):
        logger.warning(f"Refusing to write outside export root ({export_root}): {abs_path}")
        raise LooplibPermissionError(
            "Path is outside export root",
            context={"export_root": str(export_root), "requested_path": str(abs_path)}
        )

    frames = _pcm_frames(buffer)

    try:
        os.makedirs(abs_path.parent, exist_ok=True)
        sf.write(str(abs_path), frames, buffer.sample_rate, format="WAV", subtype=SUBTYPE)
    except OSError as e:
        if e.errno == 28:  # ENOSPC - No space left on device
            logger.error(f"Disk full while writing {abs_path}")
            raise DiskFullError(
                "No space left on device",
                context={"filepath": str(abs_path), "error": str(e)}
            ) from e
        elif e.errno == 13:  # EACCES - Permission denied
            logger.error(f"Permission denied: {abs_path}")
            raise LooplibPermissionError(
                "Permission denied",
                context={"filepath": str(abs_path), "error": str(e)}
            ) from e
        else:
            logger.error(f"Failed to save {abs_path}: {e}")
            raise FilesystemError(
                "Could not save audio file",
                context={"filepath": str(abs_path), "error": str(e)}
            ) from e
    except sf.SoundFileError as e:
        logger.error(f"Failed to save {abs_path}: {e}")
        raise FilesystemError(
            "Could not save audio file",
            context={"filepath": str(abs_path), "error": str(e)}
        ) from e

    # Verify what was actually written
    info = sf.info(str(abs_path))
    if info.subtype != SUBTYPE or info.frames != buffer.frame_count:
        logger.warning(
            f"Unexpected WAV on disk: subtype={info.subtype}, frames={info.frames} "
            f"(expected {SUBTYPE}, {buffer.frame_count}): {abs_path}"
        )

    logger.debug(f"Wrote {abs_path} ({buffer.frame_count} frames)")
    return str(abs_path)
