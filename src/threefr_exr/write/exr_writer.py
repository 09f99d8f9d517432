from __future__ import annotations

import logging
from pathlib import Path

import numpy as np


try:
    import OpenEXR  # type: ignore
except Exception:  # pragma: no cover - dependency is optional
    OpenEXR = None


logger = logging.getLogger(__name__)

PIXEL_TYPES = {
    "half": np.float16,
    "float": np.float32,
}

COMPRESSIONS = {
    "none": "NO_COMPRESSION",
    "rle": "RLE_COMPRESSION",
    "zips": "ZIPS_COMPRESSION",
    "zip": "ZIP_COMPRESSION",
    "piz": "PIZ_COMPRESSION",
    "pxr24": "PXR24_COMPRESSION",
    "b44": "B44_COMPRESSION",
    "b44a": "B44A_COMPRESSION",
    "dwaa": "DWAA_COMPRESSION",
    "dwab": "DWAB_COMPRESSION",
}


class WriteError(RuntimeError):
    pass


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("could not remove partial output %s", path)


def write_exr_rgba(path: Path, rgba: np.ndarray, pixel_type: str = "half", compression: str = "zip") -> None:
    """Write an HxWx4 RGBA raster as a single-part scanline EXR."""

    if OpenEXR is None:
        raise WriteError("OpenEXR is required for EXR output: pip install OpenEXR")

    arr = np.asarray(rgba)
    if arr.ndim != 3 or arr.shape[2] != 4 or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise WriteError(f"expected non-empty HxWx4 RGBA raster, got {arr.shape}")

    dtype = PIXEL_TYPES.get(pixel_type)
    if dtype is None:
        raise WriteError(f"unsupported EXR pixel type {pixel_type!r} (expected one of {sorted(PIXEL_TYPES)})")
    compression_name = COMPRESSIONS.get(compression)
    if compression_name is None:
        raise WriteError(f"unsupported EXR compression {compression!r} (expected one of {sorted(COMPRESSIONS)})")

    header = {
        "compression": getattr(OpenEXR, compression_name),
        "type": OpenEXR.scanlineimage,
    }
    channels = {"RGBA": np.ascontiguousarray(arr, dtype=dtype)}

    try:
        with OpenEXR.File(header, channels) as exr:
            exr.write(str(path))
    except Exception as exc:
        _remove_partial(path)
        raise WriteError(f"EXR write failed for {path}: {exc}") from exc
