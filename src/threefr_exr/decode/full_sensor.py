from __future__ import annotations

from typing import Any

import numpy as np

from .base import MissingDependencyError


try:
    import cv2  # type: ignore
except Exception:  # pragma: no cover - dependency is optional
    cv2 = None


# sRGB (D65) primaries to XYZ, as used by dcraw/LibRaw to build rgb_cam.
_SRGB_TO_XYZ = np.array(
    [
        [0.412453, 0.357580, 0.180423],
        [0.212671, 0.715160, 0.072169],
        [0.019334, 0.119193, 0.950227],
    ],
    dtype=np.float64,
)

# lightness/chroma basis used by LibRaw's highlight blending
_BLEND_TRANS = np.array(
    [
        [1.0, 1.0, 1.0],
        [1.7320508, -1.7320508, 0.0],
        [-1.0, -1.0, 2.0],
    ],
    dtype=np.float32,
)
_BLEND_ITRANS = np.array(
    [
        [1.0, 0.8660254, -0.5],
        [1.0, -0.8660254, -0.5],
        [1.0, 0.0, 1.0],
    ],
    dtype=np.float32,
)

_BAYER_PATTERNS = ("RGGB", "BGGR", "GRBG", "GBRG")


def _normalize_wb(values: Any) -> np.ndarray:
    raw = [float(v) for v in list(values if values is not None else [])]
    if len(raw) >= 4:
        wb = np.array(raw[:4], dtype=np.float32)
    elif len(raw) == 3:
        wb = np.array([raw[0], raw[1], raw[2], raw[1]], dtype=np.float32)
    else:
        return np.ones(4, dtype=np.float32)

    if wb[3] == 0.0:
        wb[3] = wb[1]
    if not np.all(wb > 0.0):
        return np.ones(4, dtype=np.float32)
    return wb / wb[1]


def camera_to_srgb_matrix(rgb_xyz_matrix: Any) -> np.ndarray:
    """Camera RGB -> linear sRGB, built the way dcraw builds ``rgb_cam``.

    Rows of ``cam_xyz @ srgb_to_xyz`` are normalized to sum to one so that
    white balanced neutrals stay neutral, then pseudo-inverted.
    """

    cam_xyz = np.asarray(rgb_xyz_matrix, dtype=np.float64)
    if cam_xyz.ndim != 2 or cam_xyz.shape[1] != 3 or cam_xyz.shape[0] < 3 or not cam_xyz[:3].any():
        return np.eye(3, dtype=np.float32)

    cam_rgb = cam_xyz[:3] @ _SRGB_TO_XYZ
    sums = cam_rgb.sum(axis=1, keepdims=True)
    if np.any(sums == 0.0):
        return np.eye(3, dtype=np.float32)
    cam_rgb = cam_rgb / sums
    return np.linalg.pinv(cam_rgb).astype(np.float32)


def gamma_curve(power: float, slope: float) -> tuple[float, float, float, float]:
    """Solve LibRaw's ``gamm`` coefficients for a (power, toe slope) pair.

    Returns ``(exponent, slope, linear_cut, offset)``: below ``linear_cut`` the
    curve is ``v * slope``, above it ``v ** exponent * (1 + offset) - offset``.
    The toe and the power segment meet with matching value and derivative.
    """

    g0 = 1.0 / float(power)
    g1 = float(slope)
    g2 = g3 = g4 = 0.0
    bounds = [0.0, 0.0]
    bounds[1 if g1 >= 1.0 else 0] = 1.0
    if g1 and (g1 - 1.0) * (g0 - 1.0) <= 0.0:
        for _ in range(48):
            g2 = (bounds[0] + bounds[1]) / 2.0
            above = ((g2 / g1) ** -g0 - 1.0) / g0 - 1.0 / g2 > -1.0
            bounds[1 if above else 0] = g2
        g3 = g2 / g1
        g4 = g2 * (1.0 / g0 - 1.0)
    return g0, g1, g3, g4


def encode_gamma(values: np.ndarray, power: float, slope: float) -> np.ndarray:
    exponent, toe, cut, offset = gamma_curve(power, slope)
    v = np.clip(np.asarray(values, dtype=np.float32), 0.0, 1.0)
    encoded = np.where(v < cut, v * toe, np.power(v, exponent) * (1.0 + offset) - offset)
    return np.clip(encoded, 0.0, 1.0).astype(np.float32)


def bayer_pattern(colors: np.ndarray) -> str:
    """CFA phase of the top-left 2x2 block, e.g. ``"RGGB"``."""

    if colors.ndim != 2 or colors.shape[0] < 2 or colors.shape[1] < 2:
        raise ValueError(f"color map too small for a Bayer pattern: {colors.shape}")
    block = np.where(colors[:2, :2] == 3, 1, colors[:2, :2])
    pattern = "".join("RGB"[int(c)] if 0 <= int(c) <= 2 else "?" for c in block.ravel())
    if pattern not in _BAYER_PATTERNS:
        raise ValueError(f"unsupported CFA pattern {pattern!r}")
    return pattern


def demosaic(mosaic: np.ndarray, pattern: str, algorithm: str = "AHD") -> np.ndarray:
    """Demosaic a Bayer mosaic with OpenCV.

    ``LINEAR`` maps to OpenCV's bilinear interpolation, every other LibRaw
    algorithm to its edge-aware variant. The mosaic is scaled by its peak into
    16 bits so values above 1.0 survive.
    """

    if cv2 is None:
        raise MissingDependencyError("OpenCV is required for full sensor demosaic: pip install opencv-python-headless")
    if pattern not in _BAYER_PATTERNS:
        raise ValueError(f"unsupported CFA pattern {pattern!r}")

    suffix = "" if algorithm.upper() == "LINEAR" else "_EA"
    code = getattr(cv2, f"COLOR_Bayer{pattern}2RGB{suffix}")

    peak = max(float(mosaic.max()), 1.0)
    quantized = np.rint(np.clip(mosaic / peak, 0.0, 1.0) * 65535.0).astype(np.uint16)
    rgb = cv2.demosaicing(quantized, code)
    return rgb.astype(np.float32) * np.float32(peak / 65535.0)


def blend_highlights(rgb: np.ndarray, clip: float = 1.0) -> np.ndarray:
    """Rebuild clipped pixels from their unclipped lightness and clipped chroma."""

    over = np.any(rgb > clip, axis=-1)
    if not over.any():
        return rgb

    cam = rgb[over]
    lab = cam @ _BLEND_TRANS.T
    lab_clipped = np.minimum(cam, clip) @ _BLEND_TRANS.T

    chroma = np.sum(lab[:, 1:] ** 2, axis=1)
    chroma_clipped = np.sum(lab_clipped[:, 1:] ** 2, axis=1)
    ratio = np.sqrt(np.divide(chroma_clipped, chroma, out=np.zeros_like(chroma), where=chroma > 0.0))
    lab[:, 1:] *= ratio[:, None]

    out = rgb.copy()
    out[over] = (lab @ _BLEND_ITRANS.T) / 3.0
    return out


def develop_full_sensor(
    raw_image: np.ndarray,
    raw_colors: np.ndarray | None,
    black_level_per_channel: Any,
    white_level: int,
    camera_whitebalance: Any,
    rgb_xyz_matrix: Any,
    use_camera_wb: bool = True,
    monochrome: bool = False,
    demosaic_algorithm: str = "AHD",
    highlight_mode: str = "clip",
    gamma: tuple[float, float] = (2.4, 12.92),
) -> np.ndarray:
    """Develop the complete sensor array into a 16-bit gamma-encoded raster.

    Returns HxWx3 uint16, or HxW uint16 for monochrome sensors.
    """

    mosaic = np.asarray(raw_image, dtype=np.float32)
    if mosaic.ndim != 2 or mosaic.size == 0:
        raise ValueError(f"expected a non-empty 2D sensor array, got {mosaic.shape}")

    if raw_colors is None:
        colors = np.zeros(mosaic.shape, dtype=np.intp)
    else:
        colors = np.asarray(raw_colors, dtype=np.intp)
        if colors.shape != mosaic.shape:
            raise ValueError(f"color map {colors.shape} does not match sensor array {mosaic.shape}")

    black_values = [float(v) for v in list(black_level_per_channel if black_level_per_channel is not None else [])]
    if len(black_values) == 3:
        black_values.append(black_values[1])
    if len(black_values) < 4:
        black_values = [0.0, 0.0, 0.0, 0.0]
    black = np.array(black_values[:4], dtype=np.float32)
    black_map = black[np.clip(colors, 0, 3)]

    scale = np.maximum(float(white_level) - black_map, 1.0)
    signal = np.maximum(mosaic - black_map, 0.0) / scale
    power, slope = gamma

    if monochrome:
        mono = encode_gamma(signal, power, slope)
        return np.rint(mono * 65535.0).astype(np.uint16)

    if use_camera_wb:
        wb = _normalize_wb(camera_whitebalance)
        signal = signal * wb[np.clip(colors, 0, 3)]
    if highlight_mode == "clip":
        signal = np.minimum(signal, 1.0)

    camera_rgb = demosaic(signal, bayer_pattern(colors), demosaic_algorithm)
    if highlight_mode == "blend":
        camera_rgb = blend_highlights(camera_rgb)

    matrix = camera_to_srgb_matrix(rgb_xyz_matrix)
    linear = np.einsum("ij,...j->...i", matrix, camera_rgb, optimize=True)
    encoded = encode_gamma(linear, power, slope)
    return np.rint(encoded * 65535.0).astype(np.uint16)
