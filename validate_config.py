"""
Lightweight config validation to catch obvious mistakes early.
Run automatically by make_loop.py after loading config.
"""

import sys
from looplib.logger import get_logger
from looplib.exceptions import InvalidParameter
from looplib.fade_curves import FADE_MODES
from looplib.loop_tracks import MAX_OVERLAP_RATE
from looplib.resample import (
    SIMPLE,
    SILENCE_CUT,
    MIN_SILENCE_RATE_LIMIT,
    MAX_SILENCE_RATE_LIMIT,
)

logger = get_logger(__name__)

LOOP_ALGORITHMS = ("overlap", "tail")
RESAMPLE_ALGORITHMS = (SIMPLE, SILENCE_CUT)
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
FADE_MODE_NAMES = FADE_MODES + ("lin", "log", "exp")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_fade(name: str, fade, errors: list) -> None:
    if fade is None:
        return
    if not isinstance(fade, dict):
        errors.append(f"{name} must be a mapping")
        return

    mode = fade.get("mode")
    if mode is not None and str(mode).lower() not in FADE_MODE_NAMES:
        errors.append(f"{name}.mode ({mode}) must be one of {', '.join(FADE_MODES)}")

    for key in ("control_x", "control_y"):
        value = fade.get(key)
        if value is None:
            continue
        if not _is_number(value):
            errors.append(f"{name}.{key} must be a number")
        elif not (0.0 <= value <= 1.0):
            errors.append(f"{name}.{key} ({value}) must be within [0, 1]")
        elif value < 0.1 or value > 0.9:
            # Clamped on load, so only worth a warning
            logger.warning(f"{name}.{key} ({value}) will be clamped to [0.1, 0.9]")


def validate_config(config: dict) -> None:
    errors = []

    if not isinstance(config, dict):
        raise InvalidParameter("Invalid configuration: top level must be a mapping",
                               context={"type": type(config).__name__})

    # Global
    log_level = config.get("global", {}).get("log_level")
    if log_level is not None and str(log_level).upper() not in LOG_LEVELS:
        errors.append(f"global.log_level ({log_level}) must be one of {', '.join(LOG_LEVELS)}")

    # Loop crossfade
    loop = config.get("loop", {})
    algorithm = loop.get("algorithm")
    if algorithm is not None and algorithm not in LOOP_ALGORITHMS:
        errors.append(f"loop.algorithm ({algorithm}) must be 'overlap' or 'tail'")

    overlap_rate = loop.get("overlap_rate")
    if overlap_rate is not None:
        if not _is_number(overlap_rate):
            errors.append("loop.overlap_rate must be a number")
        elif overlap_rate < 0 or overlap_rate > MAX_OVERLAP_RATE:
            errors.append(f"loop.overlap_rate ({overlap_rate}) must be within [0, {MAX_OVERLAP_RATE:g}]")

    tail_time = loop.get("tail_time")
    if tail_time is not None:
        if not _is_number(tail_time) or tail_time < 0:
            errors.append("loop.tail_time must be a non-negative number")
        elif tail_time > 60:
            logger.warning(f"loop.tail_time ({tail_time}) is unusually long (> 60s)")

    _check_fade("loop.fade_track1", loop.get("fade_track1"), errors)
    _check_fade("loop.fade_track2", loop.get("fade_track2"), errors)

    # Resampling
    resample = config.get("resample", {})
    resample_algorithm = resample.get("algorithm")
    if resample_algorithm is not None and resample_algorithm not in RESAMPLE_ALGORITHMS:
        errors.append(f"resample.algorithm ({resample_algorithm}) must be 'simple' or 'silence-cut'")

    rate = resample.get("rate")
    if rate is not None:
        if not _is_number(rate) or rate <= 0:
            errors.append("resample.rate must be a positive number")
        elif rate < 0.1 or rate > 10:
            logger.warning(f"resample.rate ({rate}) is extreme (outside [0.1, 10])")

    if not isinstance(resample.get("auto_correct", False), bool):
        errors.append("resample.auto_correct must be boolean")

    tolerance = resample.get("tolerance")
    if tolerance is not None and (not _is_number(tolerance) or tolerance <= 0):
        errors.append("resample.tolerance must be a positive number")

    max_iterations = resample.get("max_iterations")
    if max_iterations is not None:
        if not isinstance(max_iterations, int) or isinstance(max_iterations, bool) or max_iterations < 1:
            errors.append("resample.max_iterations must be a positive integer")
        elif max_iterations > 1000:
            errors.append(f"resample.max_iterations ({max_iterations}) is unreasonably large (> 1000)")

    silence = resample.get("silence_cut", {}) or {}
    min_rate = silence.get("min_silence_rate")
    max_rate = silence.get("max_silence_rate")
    for key, value in (("min_silence_rate", min_rate), ("max_silence_rate", max_rate)):
        if value is None:
            continue
        if not _is_number(value):
            errors.append(f"resample.silence_cut.{key} must be a number")
        elif not (MIN_SILENCE_RATE_LIMIT <= value <= MAX_SILENCE_RATE_LIMIT):
            errors.append(
                f"resample.silence_cut.{key} ({value}) must be within "
                f"[{MIN_SILENCE_RATE_LIMIT}, {MAX_SILENCE_RATE_LIMIT:g}]"
            )
    if _is_number(min_rate) and _is_number(max_rate) and min_rate > max_rate:
        errors.append("resample.silence_cut.min_silence_rate cannot exceed max_silence_rate")

    strength = silence.get("silence_correction_strength")
    if strength is not None and (not _is_number(strength) or strength < 0):
        errors.append("resample.silence_cut.silence_correction_strength must be a non-negative number")

    threshold = silence.get("silence_threshold")
    if threshold is not None:
        if not _is_number(threshold) or threshold < 0:
            errors.append("resample.silence_cut.silence_threshold must be a non-negative number")
        elif threshold > 1:
            logger.warning(f"silence_threshold ({threshold}) exceeds full scale; everything counts as silence")

    window_size = silence.get("window_size")
    if window_size is not None and (not isinstance(window_size, int) or isinstance(window_size, bool)
                                    or window_size < 1):
        errors.append("resample.silence_cut.window_size must be a positive integer")

    # Path validation
    paths = config.get("paths", {})
    export_dir = paths.get("export_dir")
    if export_dir is not None and (not isinstance(export_dir, str) or export_dir.strip() == ""):
        errors.append("paths.export_dir must be a non-empty string")

    if errors:
        error_msg = "Invalid configuration:\n" + "\n".join([f"- {e}" for e in errors])
        logger.error(error_msg)
        raise InvalidParameter(error_msg, context={"error_count": len(errors)})


if __name__ == "__main__":
    import yaml
    import os
    from looplib.logger import log_success

    config_path = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            try:
                config = yaml.safe_load(f)
                validate_config(config)
                log_success(logger, "Configuration is valid.")
            except (yaml.YAMLError, InvalidParameter) as e:
                logger.error(f"Config validation failed: {e}")
                sys.exit(1)
    else:
        logger.error(f"{config_path} not found. Run make_loop.py first to generate it.")
        sys.exit(1)
