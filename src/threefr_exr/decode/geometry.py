from __future__ import annotations

from .base import DecodeProcessError
from .types import ProcessingRegion, SensorGeometry


def full_sensor_region(geometry: SensorGeometry) -> ProcessingRegion:
    """Processing region covering the whole sensor array.

    The decoder's visible crop is ignored, so border and calibration pixels are
    kept in the output.
    """

    if geometry.raw_width <= 0 or geometry.raw_height <= 0:
        raise DecodeProcessError(
            f"decoder reported invalid raw sensor size {geometry.raw_width}x{geometry.raw_height}"
        )
    return ProcessingRegion(top=0, left=0, width=geometry.raw_width, height=geometry.raw_height)


def visible_region(geometry: SensorGeometry) -> ProcessingRegion:
    return ProcessingRegion(
        top=geometry.top_margin,
        left=geometry.left_margin,
        width=geometry.visible_width,
        height=geometry.visible_height,
    )


def region_fits(region: ProcessingRegion, geometry: SensorGeometry) -> bool:
    return (
        region.top >= 0
        and region.left >= 0
        and region.width > 0
        and region.height > 0
        and region.top + region.height <= geometry.raw_height
        and region.left + region.width <= geometry.raw_width
    )
