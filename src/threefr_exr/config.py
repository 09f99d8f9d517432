from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from threefr_exr.color.pipeline import ColorMode, ConversionOptions
from threefr_exr.decode.types import DecodeParams
from threefr_exr.write.exr_writer import COMPRESSIONS, PIXEL_TYPES


class ConfigError(ValueError):
    pass


@dataclass
class ConversionConfig:
    color_mode: ColorMode = ColorMode.SRGB_TO_LINEAR
    exposure: float = 1.0

    def to_options(self) -> ConversionOptions:
        return ConversionOptions(color_mode=self.color_mode, exposure=self.exposure)


@dataclass
class DecodeConfig:
    use_camera_wb: bool = True
    demosaic_algorithm: str = "AHD"
    highlight_mode: str = "clip"
    gamma: tuple[float, float] = (2.4, 12.92)

    def to_params(self) -> DecodeParams:
        return DecodeParams(
            use_camera_wb=self.use_camera_wb,
            demosaic_algorithm=self.demosaic_algorithm,
            highlight_mode=self.highlight_mode,
            gamma=self.gamma,
        )


@dataclass
class OutputConfig:
    subdir: str = "EXR"
    pixel_type: str = "half"
    compression: str = "zip"


@dataclass
class AppConfig:
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    decode: DecodeConfig = field(default_factory=DecodeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    workers: int = 1
    log_level: str = "WARNING"
    log_file: Path | None = None


def _expand_path(value: str | None, base: Path) -> Path | None:
    if value in (None, ""):
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base / path).resolve()
    return path


def _as_gamma(raw: Any) -> tuple[float, float]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ConfigError("decode.gamma must be a [power, slope] pair")
    return (float(raw[0]), float(raw[1]))


def _as_bool(raw: Any, key: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigError(f"{key} must be true or false, got {raw!r}")
    return raw


def _as_section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{key}' must be a mapping")
    return value


def validate_config(config: AppConfig) -> None:
    try:
        config.conversion.to_options()
    except ValueError as exc:
        raise ConfigError(f"conversion: {exc}") from exc
    try:
        config.decode.to_params()
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"decode: {exc}") from exc

    if config.output.pixel_type not in PIXEL_TYPES:
        raise ConfigError(f"output.pixel_type must be one of {sorted(PIXEL_TYPES)}")
    if config.output.compression not in COMPRESSIONS:
        raise ConfigError(f"output.compression must be one of {sorted(COMPRESSIONS)}")
    subdir = config.output.subdir
    if not subdir or Path(subdir).name != subdir:
        raise ConfigError("output.subdir must be a single directory name")
    if config.workers < 1:
        raise ConfigError("workers must be >= 1")


def load_config(path: str | Path) -> AppConfig:
    try:
        import yaml  # type: ignore
    except Exception as exc:
        raise RuntimeError("PyYAML is required for config loading. Install with: pip install PyYAML") from exc

    cfg_path = Path(path).expanduser().resolve()
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read config {cfg_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {cfg_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"config root must be a mapping: {cfg_path}")

    base = cfg_path.parent
    conversion_raw = _as_section(raw, "conversion")
    decode_raw = _as_section(raw, "decode")
    output_raw = _as_section(raw, "output")

    try:
        conversion = ConversionConfig(
            color_mode=ColorMode(str(conversion_raw.get("color_mode", ColorMode.SRGB_TO_LINEAR.value)).lower()),
            exposure=float(conversion_raw.get("exposure", 1.0)),
        )
        decode = DecodeConfig(
            use_camera_wb=_as_bool(decode_raw.get("use_camera_wb", True), "decode.use_camera_wb"),
            demosaic_algorithm=str(decode_raw.get("demosaic_algorithm", "AHD")),
            highlight_mode=str(decode_raw.get("highlight_mode", "clip")).lower(),
            gamma=_as_gamma(decode_raw.get("gamma", [2.4, 12.92])),
        )
        output = OutputConfig(
            subdir=str(output_raw.get("subdir", "EXR")),
            pixel_type=str(output_raw.get("pixel_type", "half")).lower(),
            compression=str(output_raw.get("compression", "zip")).lower(),
        )
        app = AppConfig(
            conversion=conversion,
            decode=decode,
            output=output,
            workers=int(raw.get("workers", 1)),
            log_level=str(raw.get("log_level", "WARNING")),
            log_file=_expand_path(raw.get("log_file"), base),
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"invalid value in {cfg_path}: {exc}") from exc

    validate_config(app)
    return app
