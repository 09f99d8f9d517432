from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from threefr_exr.write.exr_writer import WriteError, write_exr_rgba


OpenEXR = pytest.importorskip("OpenEXR")


def _rgba(h: int = 3, w: int = 5) -> np.ndarray:
    img = np.zeros((h, w, 4), dtype=np.float32)
    img[..., 0] = 0.25
    img[..., 1] = 0.5
    img[..., 2] = 2.0
    img[..., 3] = 1.0
    return img


def _read_rgba(path: Path) -> np.ndarray:
    with OpenEXR.File(str(path)) as exr:
        return np.asarray(exr.channels()["RGBA"].pixels)


def test_writes_half_rgba(tmp_path: Path) -> None:
    out = tmp_path / "IMG_001.exr"
    write_exr_rgba(out, _rgba())

    pixels = _read_rgba(out)
    assert pixels.shape == (3, 5, 4)
    assert pixels.dtype == np.float16
    assert np.all(pixels[..., 3] == 1.0)
    # values above 1.0 survive
    assert np.allclose(pixels[..., 2], 2.0)


def test_writes_float_rgba(tmp_path: Path) -> None:
    out = tmp_path / "IMG_002.exr"
    write_exr_rgba(out, _rgba(), pixel_type="float", compression="piz")

    pixels = _read_rgba(out)
    assert pixels.dtype == np.float32
    assert np.allclose(pixels[..., 0], 0.25)


@pytest.mark.parametrize("shape", [(3, 5, 3), (3, 5), (0, 5, 4)])
def test_rejects_malformed_raster(tmp_path: Path, shape: tuple[int, ...]) -> None:
    with pytest.raises(WriteError):
        write_exr_rgba(tmp_path / "bad.exr", np.zeros(shape, dtype=np.float32))


def test_rejects_unknown_options(tmp_path: Path) -> None:
    with pytest.raises(WriteError):
        write_exr_rgba(tmp_path / "a.exr", _rgba(), pixel_type="uint")
    with pytest.raises(WriteError):
        write_exr_rgba(tmp_path / "a.exr", _rgba(), compression="lzma")


def test_unwritable_destination_is_write_error(tmp_path: Path) -> None:
    with pytest.raises(WriteError):
        write_exr_rgba(tmp_path / "missing_dir" / "a.exr", _rgba())
