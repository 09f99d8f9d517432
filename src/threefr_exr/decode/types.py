from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np


# LibRaw demosaic algorithm names accepted in DecodeParams
DEMOSAIC_ALGORITHMS = (
    "LINEAR",
    "VNG",
    "PPG",
    "AHD",
    "DCB",
    "MODIFIED_AHD",
    "AFD",
    "VCD",
    "VCD_MODIFIED_AHD",
    "LMMSE",
    "AMAZE",
    "DHT",
    "AAHD",
)

HIGHLIGHT_MODES = ("clip", "ignore", "blend")


@dataclass(frozen=True)
class SensorGeometry:
    raw_width: int
    raw_height: int
    visible_width: int
    visible_height: int
    top_margin: int
    left_margin: int


@dataclass(frozen=True)
class ProcessingRegion:
    top: int
    left: int
    width: int
    height: int


@dataclass(frozen=True)
class DecodeParams:
    use_camera_wb: bool = True
    demosaic_algorithm: str = "AHD"
    highlight_mode: str = "clip"
    gamma: tuple[float, float] = (2.4, 12.92)
    output_bps: int = 16

    def __post_init__(self) -> None:
        demosaic = str(self.demosaic_algorithm).upper()
        if demosaic not in DEMOSAIC_ALGORITHMS:
            raise ValueError(f"unknown demosaic algorithm {self.demosaic_algorithm!r}")
        highlight = str(self.highlight_mode).lower()
        if highlight not in HIGHLIGHT_MODES:
            raise ValueError(f"highlight mode must be one of {HIGHLIGHT_MODES}, got {self.highlight_mode!r}")

        power, slope = (float(v) for v in self.gamma)
        if not math.isfinite(power) or power <= 0.0:
            raise ValueError(f"gamma power must be a positive finite number, got {power!r}")
        if not math.isfinite(slope) or slope < 0.0:
            raise ValueError(f"gamma slope must be a finite number >= 0, got {slope!r}")

        object.__setattr__(self, "demosaic_algorithm", demosaic)
        object.__setattr__(self, "highlight_mode", highlight)
        object.__setattr__(self, "gamma", (power, slope))


@dataclass(frozen=True)
class RawFrame:
    """Processed raster as emitted by the decoder.

    ``samples`` is flat, row-major and interleaved by channel.
    """

    width: int
    height: int
    channels: int
    bit_depth: int
    samples: np.ndarray

    @classmethod
    def from_array(cls, image: np.ndarray) -> "RawFrame":
        arr = np.asarray(image)
        if arr.ndim == 2:
            height, width = arr.shape
            channels = 1
        elif arr.ndim == 3:
            height, width, channels = arr.shape
        else:
            raise ValueError(f"expected HxW or HxWxC image, got shape {arr.shape}")

        samples = np.ascontiguousarray(arr).reshape(-1)
        samples.flags.writeable = False
        return cls(
            width=int(width),
            height=int(height),
            channels=int(channels),
            bit_depth=int(arr.dtype.itemsize * 8),
            samples=samples,
        )
