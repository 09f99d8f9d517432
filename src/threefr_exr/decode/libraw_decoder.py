from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from .base import (
    DecodeError,
    DecodeOpenError,
    DecodeProcessError,
    DecodeUnpackError,
    ImageCreationError,
    MissingDependencyError,
)
from .full_sensor import develop_full_sensor
from .geometry import region_fits, visible_region
from .types import DecodeParams, ProcessingRegion, RawFrame, SensorGeometry


try:
    import rawpy  # type: ignore
except Exception:  # pragma: no cover - dependency is optional
    rawpy = None


logger = logging.getLogger(__name__)


def _geometry_from_sizes(sizes: Any) -> SensorGeometry:
    return SensorGeometry(
        raw_width=int(sizes.raw_width),
        raw_height=int(sizes.raw_height),
        visible_width=int(sizes.width),
        visible_height=int(sizes.height),
        top_margin=int(sizes.top_margin),
        left_margin=int(sizes.left_margin),
    )


def _is_monochrome(raw: Any) -> bool:
    if int(getattr(raw, "num_colors", 3) or 3) == 1:
        return True
    return getattr(raw, "raw_pattern", None) is None


def _postprocess_kwargs(params: DecodeParams) -> dict[str, Any]:
    demosaic = getattr(rawpy.DemosaicAlgorithm, params.demosaic_algorithm.upper(), None)
    if demosaic is None:
        raise DecodeProcessError(f"unknown demosaic algorithm: {params.demosaic_algorithm}")
    highlight = getattr(rawpy.HighlightMode, params.highlight_mode.capitalize())

    return {
        "use_camera_wb": params.use_camera_wb,
        "use_auto_wb": False,
        "no_auto_bright": True,
        "output_color": rawpy.ColorSpace.sRGB,
        "output_bps": params.output_bps,
        "user_flip": 0,
        "demosaic_algorithm": demosaic,
        "four_color_rgb": False,
        "highlight_mode": highlight,
        "gamma": tuple(params.gamma),
    }


class LibRawSession:
    """An opened raw file backed by a rawpy/LibRaw handle."""

    def __init__(self, path: Path, raw: Any) -> None:
        self.path = path
        self._raw = raw
        try:
            self.geometry = _geometry_from_sizes(raw.sizes)
        except Exception as exc:
            self.close()
            raise DecodeUnpackError(f"could not read sensor geometry for {path}: {exc}") from exc

        logger.info(
            "%s: raw sensor %sx%s, visible %sx%s, margins top=%s left=%s",
            path.name,
            self.geometry.raw_width,
            self.geometry.raw_height,
            self.geometry.visible_width,
            self.geometry.visible_height,
            self.geometry.top_margin,
            self.geometry.left_margin,
        )

    def __enter__(self) -> "LibRawSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        raw, self._raw = self._raw, None
        if raw is not None:
            raw.close()

    def process(self, region: ProcessingRegion, params: DecodeParams) -> RawFrame:
        if self._raw is None:
            raise DecodeProcessError(f"session for {self.path} is already closed")
        if not region_fits(region, self.geometry):
            raise DecodeProcessError(
                f"processing region {region} exceeds raw sensor "
                f"{self.geometry.raw_width}x{self.geometry.raw_height} for {self.path}"
            )

        if region == visible_region(self.geometry):
            image = self._process_with_libraw(params)
        else:
            image = self._process_region(region, params)

        if image.size == 0 or image.ndim not in (2, 3):
            raise ImageCreationError(f"decoder produced an empty or malformed raster for {self.path}: {image.shape}")

        frame = RawFrame.from_array(image)
        logger.info(
            "%s: processed raster %sx%s, %s channel(s), %s-bit",
            self.path.name,
            frame.width,
            frame.height,
            frame.channels,
            frame.bit_depth,
        )
        return frame

    def _process_with_libraw(self, params: DecodeParams) -> np.ndarray:
        kwargs = _postprocess_kwargs(params)
        try:
            rgb = self._raw.postprocess(**kwargs)
        except Exception as exc:
            raise DecodeProcessError(f"LibRaw processing failed for {self.path}: {exc}") from exc
        if rgb is None:
            raise ImageCreationError(f"LibRaw returned no image for {self.path}")
        return np.asarray(rgb)

    def _process_region(self, region: ProcessingRegion, params: DecodeParams) -> np.ndarray:
        # rawpy cannot move LibRaw's crop, so the region is developed from the raw array
        try:
            raw_image = self._raw.raw_image
            raw_colors = None if _is_monochrome(self._raw) else self._raw.raw_colors
        except Exception as exc:
            raise DecodeUnpackError(f"raw sensor data unavailable for {self.path}: {exc}") from exc

        rows = slice(region.top, region.top + region.height)
        cols = slice(region.left, region.left + region.width)
        try:
            return develop_full_sensor(
                raw_image=raw_image[rows, cols],
                raw_colors=None if raw_colors is None else raw_colors[rows, cols],
                black_level_per_channel=self._raw.black_level_per_channel,
                white_level=int(self._raw.white_level),
                camera_whitebalance=self._raw.camera_whitebalance,
                rgb_xyz_matrix=self._raw.rgb_xyz_matrix,
                use_camera_wb=params.use_camera_wb,
                monochrome=raw_colors is None,
                demosaic_algorithm=params.demosaic_algorithm,
                highlight_mode=params.highlight_mode,
                gamma=params.gamma,
            )
        except DecodeError:
            raise
        except Exception as exc:
            raise DecodeProcessError(f"full sensor processing failed for {self.path}: {exc}") from exc


class LibRawDecoder:
    """RAW decoder using rawpy (LibRaw backend)."""

    def __init__(self) -> None:
        if rawpy is None:
            raise MissingDependencyError("rawpy is required for 3FR decode: pip install rawpy")

    def open(self, path: Path) -> LibRawSession:
        try:
            raw = rawpy.imread(str(path))
        except Exception as exc:
            raise DecodeOpenError(f"failed to open {path}: {exc}") from exc
        return LibRawSession(path, raw)
