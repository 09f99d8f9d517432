from __future__ import annotations

from dataclasses import dataclass
import enum
import math

import numpy as np

from threefr_exr.decode.base import UnsupportedFormatError
from threefr_exr.decode.types import RawFrame

from .srgb import reinhard, srgb_to_linear


class ColorMode(str, enum.Enum):
    SRGB_TO_LINEAR = "srgb_to_linear"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class ConversionOptions:
    color_mode: ColorMode = ColorMode.SRGB_TO_LINEAR
    exposure: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "color_mode", ColorMode(self.color_mode))
        exposure = float(self.exposure)
        if not math.isfinite(exposure) or exposure <= 0.0:
            raise ValueError(f"exposure must be a positive finite number, got {self.exposure!r}")
        object.__setattr__(self, "exposure", exposure)

    def describe(self) -> str:
        if self.color_mode is ColorMode.SRGB_TO_LINEAR:
            return "sRGB->Linear conversion"
        return "Linear (no conversion)"


@dataclass(frozen=True)
class SampleFormat:
    dtype: np.dtype
    full_scale: float


# bit depth -> how to read and normalize one sample
_SAMPLE_FORMATS = {
    8: SampleFormat(dtype=np.dtype(np.uint8), full_scale=255.0),
    16: SampleFormat(dtype=np.dtype(np.uint16), full_scale=65535.0),
}

_SUPPORTED_CHANNELS = (1, 3)


def _frame_pixels(frame: RawFrame) -> np.ndarray:
    fmt = _SAMPLE_FORMATS.get(frame.bit_depth)
    if fmt is None:
        raise UnsupportedFormatError(f"unsupported bit depth {frame.bit_depth} (expected 8 or 16)")
    if frame.channels not in _SUPPORTED_CHANNELS:
        raise UnsupportedFormatError(f"unsupported channel count {frame.channels} (expected 1 or 3)")

    expected = frame.width * frame.height * frame.channels
    samples = np.asarray(frame.samples)
    if samples.size != expected:
        raise UnsupportedFormatError(
            f"sample buffer holds {samples.size} values, expected {expected} "
            f"for {frame.width}x{frame.height}x{frame.channels}"
        )

    normalized = samples.astype(fmt.dtype, copy=False).astype(np.float32) / np.float32(fmt.full_scale)
    return normalized.reshape(frame.height, frame.width, frame.channels)


def transform_samples(values: np.ndarray, options: ConversionOptions) -> np.ndarray:
    """sRGB decode and tone compression for normalized samples."""

    out = np.asarray(values, dtype=np.float32)
    if options.color_mode is ColorMode.SRGB_TO_LINEAR:
        out = srgb_to_linear(out)
    if options.exposure != 1.0:
        out = reinhard(out, options.exposure)
    return out


def convert_frame(frame: RawFrame, options: ConversionOptions) -> np.ndarray:
    """Convert a decoded frame into an HxWx4 float32 RGBA raster."""

    pixels = transform_samples(_frame_pixels(frame), options)

    rgba = np.empty((frame.height, frame.width, 4), dtype=np.float32)
    if frame.channels == 1:
        rgba[..., 0:3] = pixels
    else:
        rgba[..., 0:3] = pixels[..., 0:3]
    rgba[..., 3] = 1.0
    return rgba
