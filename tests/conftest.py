from __future__ import annotations

from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from threefr_exr.decode.base import DecodeOpenError
from threefr_exr.decode.types import DecodeParams, ProcessingRegion, RawFrame, SensorGeometry


class FakeSession:
    def __init__(self, decoder: "FakeDecoder", path: Path) -> None:
        self._decoder = decoder
        self.path = path
        self.geometry = decoder.geometry

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def process(self, region: ProcessingRegion, params: DecodeParams) -> RawFrame:
        self._decoder.regions.append(region)
        h, w = region.height, region.width
        ramp = np.linspace(0, 65535, h * w * self._decoder.channels).astype(np.uint16)
        shape = (h, w) if self._decoder.channels == 1 else (h, w, self._decoder.channels)
        return RawFrame.from_array(ramp.reshape(shape))

    def close(self) -> None:
        self._decoder.closed.append(self.path.name)


class FakeDecoder:
    """Stands in for LibRaw: fixed geometry, files named in ``corrupt`` fail to open."""

    def __init__(self, corrupt: tuple[str, ...] = (), channels: int = 3) -> None:
        self.corrupt = set(corrupt)
        self.channels = channels
        self.geometry = SensorGeometry(
            raw_width=6,
            raw_height=4,
            visible_width=4,
            visible_height=2,
            top_margin=1,
            left_margin=1,
        )
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.regions: list[ProcessingRegion] = []

    def open(self, path: Path) -> FakeSession:
        self.opened.append(path.name)
        if path.name in self.corrupt:
            raise DecodeOpenError(f"failed to open {path}: corrupt file")
        return FakeSession(self, path)


@pytest.fixture
def fake_decoder() -> Callable[..., FakeDecoder]:
    return FakeDecoder


@pytest.fixture
def raw_dir(tmp_path: Path) -> Callable[..., Path]:
    def _make(*names: str) -> Path:
        for name in names:
            (tmp_path / name).write_bytes(b"raw")
        return tmp_path

    return _make
