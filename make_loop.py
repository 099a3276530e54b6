#!/usr/bin/env python3
"""
make_loop.py: CLI entrypoint for loop crossfades and slowed-down speech.

Usage:
  python make_loop.py --loop --input take.wav --start 1.0 --end 5.0
  python make_loop.py --slow --input speech.wav
  python make_loop.py --bpm --input drums.wav --start 0 --end 8
"""

import argparse
import sys
import os
import yaml
from pathlib import Path

from looplib import buffer as buffer_utils
from looplib import convergence, io_utils, loop_tracks, resample, tempo
from looplib.fade_curves import FadeSettings, DEFAULT_FADE_IN, DEFAULT_FADE_OUT
from looplib.logger import get_logger, log_success, configure_root_logger
from looplib.exceptions import LooplibError, InvalidParameter
from validate_config import validate_config

logger = get_logger(__name__)


DEFAULT_CONFIG_YAML = """# Global settings
global:
  log_level: INFO             # DEBUG, INFO, WARNING, ERROR, CRITICAL

# Loop crossfade
loop:
  algorithm: overlap          # overlap | tail
  overlap_rate: 10.0          # Percent of the use-range that crossfades (0-50)
  tail_time: 0.5              # Seconds of post-roll mixed into the loop start (tail)

  fade_track1:                # Fade-in of the loop head
    mode: logarithmic         # linear | logarithmic | exponential | custom
    control_x: 0.25           # Custom curve control point (0.1-0.9)
    control_y: 0.1
  fade_track2:                # Fade-out of the loop tail
    mode: logarithmic
    control_x: 0.9
    control_y: 0.9

# Slow speech resampling
resample:
  algorithm: silence-cut      # simple | silence-cut
  rate: 0.7                   # Playback rate (0.7 = 70% speed, output 1/0.7 longer)
  auto_correct: true          # Search silence settings until the length matches the input
  tolerance: 0.01             # Acceptable duration error (seconds)
  max_iterations: 20          # Search budget

  silence_cut:
    min_silence_rate: 1.0     # Lowest silence rate (0.001-256)
    max_silence_rate: 4.0     # Highest silence rate (0.001-256)
    silence_correction_strength: 0.5
    silence_threshold: 0.01   # RMS below this counts as silence
    window_size: 1024         # Silence detection window (samples)

# Directory paths
paths:
  export_dir: export          # Output directory
"""


def load_or_create_config(config_path: str = "config.yaml") -> dict:
    """
    Load config from file or create default if missing.

    Args:
        config_path: Path to config.yaml

    Returns:
        Configuration dictionary
    """
    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
            logger.info(f"Loaded config from {config_path}")
            return config
    else:
        logger.info(f"Config not found, creating default at {config_path}")
        with open(config_path, 'w') as f:
            f.write(DEFAULT_CONFIG_YAML)
        config = yaml.safe_load(DEFAULT_CONFIG_YAML)
        return config


def loop_params_from_config(config: dict) -> loop_tracks.LoopParams:
    """Build OverlapParams or TailParams from the `loop` section."""
    loop = config.get('loop', {})
    algorithm = loop.get('algorithm', 'overlap')
    if algorithm == 'overlap':
        return loop_tracks.OverlapParams(overlap_rate=loop.get('overlap_rate', 0.0))
    if algorithm == 'tail':
        return loop_tracks.TailParams(tail_time=loop.get('tail_time', 0.0))
    raise InvalidParameter("Unknown loop algorithm", context={"algorithm": algorithm})


def fade_settings_from_config(config: dict):
    """(track1, track2) fade settings from the `loop` section."""
    loop = config.get('loop', {})
    return (
        FadeSettings.from_dict(loop.get('fade_track1'), DEFAULT_FADE_IN),
        FadeSettings.from_dict(loop.get('fade_track2'), DEFAULT_FADE_OUT),
    )


def resolve_range(buffer: buffer_utils.SampleBuffer, start, end):
    """Fill in a missing --start/--end with the buffer bounds."""
    start = 0.0 if start is None else start
    end = buffer.duration if end is None else end
    return start, end


def output_path(config: dict, input_path: str, suffix: str, override: str = None) -> str:
    if override:
        return override
    stem = Path(input_path).stem
    export_dir = config.get('paths', {}).get('export_dir', 'export')
    return os.path.join(export_dir, f"{stem}_{suffix}.wav")


def run_loop(config: dict, args) -> None:
    """Build the crossfaded loop and export the mix plus both track stems."""
    original = io_utils.load_audio(args.input)
    start, end = resolve_range(original, args.start, args.end)
    if start < 0 or end > original.duration or start >= end:
        raise InvalidParameter(
            "Use-range must lie inside the recording",
            context={"start": start, "end": end, "duration": round(original.duration, 3)}
        )

    params = loop_params_from_config(config)
    fade1, fade2 = fade_settings_from_config(config)
    logger.info(f"Building {config.get('loop', {}).get('algorithm', 'overlap')} loop from [{start:.3f}, {end:.3f})s")

    result = loop_tracks.build_loop(original, start, end, params, fade1, fade2)

    mix_path = io_utils.save_wav(output_path(config, args.input, "loop", args.output), result.mixed)
    stem_dir = os.path.dirname(mix_path)
    base = Path(mix_path).stem
    io_utils.save_wav(os.path.join(stem_dir, f"{base}_track1.wav"), result.track1)
    io_utils.save_wav(os.path.join(stem_dir, f"{base}_track2.wav"), result.track2)

    log_success(logger, f"Saved loop ({result.loop_duration:.3f}s) to {mix_path}")


def run_slow(config: dict, args) -> None:
    """Resample the input and export it, optionally auto-correcting its length."""
    original = io_utils.load_audio(args.input)
    start, end = resolve_range(original, args.start, args.end)
    source = buffer_utils.extract_range(original, start, end)

    section = config.get('resample', {})
    algorithm = section.get('algorithm', resample.SIMPLE)
    rate = section.get('rate', 1.0)
    silence_config = resample.SilenceCutConfig.from_dict(section.get('silence_cut'))

    if algorithm == resample.SILENCE_CUT and section.get('auto_correct', False):
        result = convergence.auto_correct(
            source,
            rate,
            source.duration,
            config=silence_config,
            tolerance=section.get('tolerance', convergence.DEFAULT_TOLERANCE),
            max_iterations=section.get('max_iterations', convergence.DEFAULT_MAX_ITERATIONS),
        )
        output = result.buffer
        if not result.converged:
            logger.warning(
                f"Length off by {result.residual:+.3f}s after {result.iterations} iteration(s)"
            )
    else:
        output = resample.resample(source, rate, algorithm, silence_config).buffer

    path = io_utils.save_wav(output_path(config, args.input, "slow", args.output), output)
    log_success(logger, f"Saved x{rate:g} ({source.duration:.3f}s -> {output.duration:.3f}s) to {path}")


def run_bpm(config: dict, args) -> None:
    """Print the tempo estimate of the selected range."""
    original = io_utils.load_audio(args.input)
    start, end = resolve_range(original, args.start, args.end)
    bpm = tempo.estimate_bpm(original, start, end)
    if bpm is None:
        logger.warning(f"No tempo found in [{start:.3f}, {end:.3f})s")
    else:
        print(f"{bpm:.3f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build seamless loops and slowed-down speech from recordings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python make_loop.py --loop --input take.wav --start 1 --end 5   # Crossfaded loop of 1s-5s
  python make_loop.py --slow --input speech.wav                   # Slow down, keep the length
  python make_loop.py --bpm --input drums.wav --end 8             # Tempo of the first 8s
        """
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        '--loop',
        action='store_true',
        help='Build a crossfaded loop from the use-range'
    )
    mode.add_argument(
        '--slow',
        action='store_true',
        help='Resample (slow down) the input'
    )
    mode.add_argument(
        '--bpm',
        action='store_true',
        help='Estimate the tempo of the range'
    )

    parser.add_argument(
        '--input',
        type=str,
        help='Input audio file'
    )
    parser.add_argument(
        '--start',
        type=float,
        default=None,
        help='Range start in seconds (default: 0)'
    )
    parser.add_argument(
        '--end',
        type=float,
        default=None,
        help='Range end in seconds (default: end of file)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to config.yaml (default: config.yaml)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output WAV path (default: <export_dir>/<input>_<mode>.wav)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # If no mode specified, show help
    if not any([args.loop, args.slow, args.bpm]):
        parser.print_help()
        return 1
    if not args.input:
        parser.error("--input is required")

    try:
        # Load or create config
        config = load_or_create_config(args.config)
        # Validate config early to catch obvious errors
        validate_config(config)

        level = 'DEBUG' if args.verbose else config.get('global', {}).get('log_level')
        configure_root_logger(level)

        if args.loop:
            run_loop(config, args)
        elif args.slow:
            run_slow(config, args)
        else:
            run_bpm(config, args)
    except yaml.YAMLError as e:
        logger.error(f"Could not parse config {args.config}: {e}")
        return 1
    except (LooplibError, OSError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
