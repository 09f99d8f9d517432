from __future__ import annotations

from pathlib import Path

import pytest

from threefr_exr.color.pipeline import ColorMode
from threefr_exr.config import AppConfig, ConfigError, DecodeConfig, load_config, validate_config


def test_defaults_match_converter_behavior() -> None:
    cfg = AppConfig()
    options = cfg.conversion.to_options()
    assert options.color_mode is ColorMode.SRGB_TO_LINEAR
    assert options.exposure == 1.0
    assert cfg.output.subdir == "EXR"
    assert cfg.output.pixel_type == "half"
    assert cfg.workers == 1
    assert cfg.decode.to_params().output_bps == 16


def test_load_config_reads_sections(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(
        """
conversion:
  color_mode: passthrough
  exposure: 1.5
decode:
  demosaic_algorithm: DCB
  gamma: [2.222, 4.5]
output:
  pixel_type: float
  compression: piz
workers: 3
log_level: INFO
log_file: ./logs/run.log
""",
        encoding="utf-8",
    )

    cfg = load_config(cfg_file)
    assert cfg.conversion.color_mode is ColorMode.PASSTHROUGH
    assert cfg.conversion.exposure == 1.5
    assert cfg.decode.demosaic_algorithm == "DCB"
    assert cfg.decode.gamma == (2.222, 4.5)
    assert cfg.output.pixel_type == "float"
    assert cfg.output.compression == "piz"
    assert cfg.workers == 3
    assert cfg.log_level == "INFO"
    assert cfg.log_file == (tmp_path / "logs" / "run.log").resolve()


def test_empty_config_gives_defaults(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("", encoding="utf-8")
    cfg = load_config(cfg_file)
    assert cfg.conversion.exposure == 1.0
    assert cfg.output.subdir == "EXR"


@pytest.mark.parametrize(
    "body",
    [
        "conversion:\n  exposure: 0\n",
        "conversion:\n  color_mode: rec709\n",
        "output:\n  pixel_type: uint8\n",
        "output:\n  subdir: a/b\n",
        "decode:\n  gamma: 2.2\n",
        "decode:\n  gamma: [0, 4.5]\n",
        "decode:\n  demosaic_algorithm: FANCY\n",
        "decode:\n  highlight_mode: rebuild\n",
        "decode:\n  use_camera_wb: \"false\"\n",
        "decode:\n  use_camera_wb: 0\n",
        "workers: 0\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, body: str) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(cfg_file)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_use_camera_wb_false_is_kept(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("decode:\n  use_camera_wb: false\n  highlight_mode: Blend\n", encoding="utf-8")
    params = load_config(cfg_file).decode.to_params()
    assert params.use_camera_wb is False
    assert params.highlight_mode == "blend"


def test_validate_config_checks_decode_section() -> None:
    cfg = AppConfig(decode=DecodeConfig(demosaic_algorithm="bogus"))
    with pytest.raises(ConfigError):
        validate_config(cfg)
