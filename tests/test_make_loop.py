"""
End-to-end tests of the make_loop.py CLI.
"""

from unittest import mock

import numpy as np
import pytest
import soundfile as sf
import yaml

import make_loop

SR = 8000


@pytest.fixture(autouse=True)
def no_export_root(monkeypatch):
    monkeypatch.delenv("LOOPLIB_EXPORT_ROOT", raising=False)


@pytest.fixture
def take(tmp_path):
    """3s of tone with a 1s pause in the middle."""
    t = np.arange(SR) / SR
    tone = 0.4 * np.sin(2 * np.pi * 220 * t)
    audio = np.concatenate([tone, np.zeros(SR), tone])
    path = tmp_path / "take.wav"
    sf.write(str(path), audio, SR, subtype="PCM_16")
    return path


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


def test_no_mode_prints_help(config_path):
    assert make_loop.main(["--config", str(config_path)]) == 1


def test_creates_default_config(tmp_path, take, config_path):
    out = tmp_path / "out" / "loop.wav"
    make_loop.main(["--loop", "--input", str(take), "--config", str(config_path), "--output", str(out)])
    assert config_path.exists()
    assert yaml.safe_load(config_path.read_text()) == yaml.safe_load(make_loop.DEFAULT_CONFIG_YAML)


def test_loop_mode_writes_mix_and_stems(tmp_path, take, config_path):
    out = tmp_path / "out" / "loop.wav"
    code = make_loop.main([
        "--loop", "--input", str(take), "--start", "0.5", "--end", "2.5",
        "--config", str(config_path), "--output", str(out),
    ])
    assert code == 0

    info = sf.info(str(out))
    assert info.subtype == "PCM_16"
    # Default overlap of 10% trims the loop to 90% of the 2s use-range
    assert info.frames == int(2.0 * 0.9 * SR)
    assert (tmp_path / "out" / "loop_track1.wav").exists()
    assert (tmp_path / "out" / "loop_track2.wav").exists()


def test_tail_loop_keeps_use_range_length(tmp_path, take, config_path):
    config = yaml.safe_load(make_loop.DEFAULT_CONFIG_YAML)
    config["loop"]["algorithm"] = "tail"
    config["loop"]["tail_time"] = 0.25
    config_path.write_text(yaml.safe_dump(config))

    out = tmp_path / "tail.wav"
    code = make_loop.main([
        "--loop", "--input", str(take), "--start", "0.5", "--end", "2.0",
        "--config", str(config_path), "--output", str(out),
    ])
    assert code == 0
    assert sf.info(str(out)).frames == int(1.5 * SR)


def test_invalid_range_fails(tmp_path, take, config_path):
    code = make_loop.main([
        "--loop", "--input", str(take), "--start", "2.0", "--end", "1.0",
        "--config", str(config_path), "--output", str(tmp_path / "x.wav"),
    ])
    assert code == 1


def test_slow_mode_simple(tmp_path, take, config_path):
    config = yaml.safe_load(make_loop.DEFAULT_CONFIG_YAML)
    config["resample"]["algorithm"] = "simple"
    config["resample"]["rate"] = 0.5
    config_path.write_text(yaml.safe_dump(config))

    out = tmp_path / "slow.wav"
    assert make_loop.main(["--slow", "--input", str(take), "--config", str(config_path),
                           "--output", str(out)]) == 0
    assert sf.info(str(out)).frames == 6 * SR


def test_slow_mode_auto_correct(tmp_path, take, config_path):
    out = tmp_path / "slow.wav"
    assert make_loop.main(["--slow", "--input", str(take), "--config", str(config_path),
                           "--output", str(out)]) == 0
    frames = sf.info(str(out)).frames
    # Silence absorbs part of the slow-down, so the result is shorter than 3s / 0.7
    assert frames < int(3 * SR / 0.7)


def test_default_output_goes_to_export_dir(tmp_path, take, config_path):
    config = yaml.safe_load(make_loop.DEFAULT_CONFIG_YAML)
    config["paths"]["export_dir"] = str(tmp_path / "exports")
    config_path.write_text(yaml.safe_dump(config))

    assert make_loop.main(["--loop", "--input", str(take), "--config", str(config_path)]) == 0
    assert (tmp_path / "exports" / "take_loop.wav").exists()


def test_bpm_mode_prints_estimate(tmp_path, config_path, capsys):
    audio = np.zeros(4 * SR)
    for beat in range(8):
        start = beat * SR // 2
        audio[start:start + 80] = 0.8
    path = tmp_path / "clicks.wav"
    sf.write(str(path), audio, SR, subtype="PCM_16")

    assert make_loop.main(["--bpm", "--input", str(path), "--config", str(config_path)]) == 0
    printed = capsys.readouterr().out.strip().splitlines()[-1]
    assert float(printed) == pytest.approx(120.0, abs=2.0)


def test_missing_input_fails(tmp_path, config_path):
    assert make_loop.main(["--bpm", "--input", str(tmp_path / "nope.wav"),
                           "--config", str(config_path)]) == 1


def test_invalid_config_fails(tmp_path, take, config_path):
    config = yaml.safe_load(make_loop.DEFAULT_CONFIG_YAML)
    config["loop"]["overlap_rate"] = 99
    config_path.write_text(yaml.safe_dump(config))
    with mock.patch.object(make_loop.logger, "error") as error:
        code = make_loop.main(["--loop", "--input", str(take), "--config", str(config_path),
                               "--output", str(tmp_path / "x.wav")])
    assert code == 1
    assert "loop.overlap_rate" in error.call_args[0][0]
    assert not (tmp_path / "x.wav").exists()


def test_malformed_yaml_fails(tmp_path, take, config_path):
    config_path.write_text("loop: [overlap_rate: 10\n  algorithm: : tail\n")
    with mock.patch.object(make_loop.logger, "error") as error:
        code = make_loop.main(["--loop", "--input", str(take), "--config", str(config_path)])
    assert code == 1
    assert str(config_path) in error.call_args[0][0]


def test_non_mapping_config_fails(take, config_path):
    config_path.write_text("- just\n- a list\n")
    assert make_loop.main(["--loop", "--input", str(take), "--config", str(config_path)]) == 1
