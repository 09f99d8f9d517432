from .base import (
    DecodeError,
    DecodeOpenError,
    DecodeProcessError,
    DecodeUnpackError,
    ImageCreationError,
    MissingDependencyError,
    RawDecoder,
    RawSession,
    UnsupportedFormatError,
)
from .geometry import full_sensor_region, visible_region
from .libraw_decoder import LibRawDecoder
from .types import DecodeParams, ProcessingRegion, RawFrame, SensorGeometry

__all__ = [
    "DecodeError",
    "DecodeOpenError",
    "DecodeProcessError",
    "DecodeUnpackError",
    "ImageCreationError",
    "MissingDependencyError",
    "RawDecoder",
    "RawSession",
    "UnsupportedFormatError",
    "full_sensor_region",
    "visible_region",
    "LibRawDecoder",
    "DecodeParams",
    "ProcessingRegion",
    "RawFrame",
    "SensorGeometry",
]
