from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .types import DecodeParams, ProcessingRegion, RawFrame, SensorGeometry


class DecodeError(RuntimeError):
    pass


class DecodeOpenError(DecodeError):
    pass


class DecodeUnpackError(DecodeError):
    pass


class DecodeProcessError(DecodeError):
    pass


class ImageCreationError(DecodeError):
    pass


class UnsupportedFormatError(DecodeError):
    pass


class MissingDependencyError(DecodeError):
    pass


class RawSession(Protocol):
    """One opened raw file.

    ``geometry`` is readable as soon as the session exists; ``process`` runs the
    decoder's demosaic/white-balance/color stage over ``region``.
    """

    geometry: SensorGeometry

    def process(self, region: ProcessingRegion, params: DecodeParams) -> RawFrame:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "RawSession":
        ...

    def __exit__(self, *exc_info: object) -> None:
        ...


class RawDecoder(Protocol):
    def open(self, path: Path) -> RawSession:
        ...
