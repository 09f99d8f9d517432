from __future__ import annotations

import numpy as np


# IEC 61966-2-1 breakpoints, encoded and linear domains.
SRGB_ENCODED_CUT = 0.04045
SRGB_LINEAR_CUT = 0.0031308


def srgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """Inverse sRGB transfer function.

    Input is clamped to [0, 1] before decoding.
    """

    x = np.clip(np.asarray(srgb, dtype=np.float32), 0.0, 1.0)
    low = x / np.float32(12.92)
    high = np.power((x + np.float32(0.055)) / np.float32(1.055), np.float32(2.4))
    return np.where(x <= SRGB_ENCODED_CUT, low, high).astype(np.float32)


def linear_to_srgb(linear: np.ndarray) -> np.ndarray:
    """Forward sRGB transfer function, clamped to [0, 1]."""

    x = np.clip(np.asarray(linear, dtype=np.float32), 0.0, 1.0)
    low = x * np.float32(12.92)
    high = np.float32(1.055) * np.power(x, np.float32(1.0 / 2.4)) - np.float32(0.055)
    return np.where(x <= SRGB_LINEAR_CUT, low, high).astype(np.float32)


def reinhard(values: np.ndarray, exposure: float) -> np.ndarray:
    """Simple Reinhard compression of exposure-scaled values: x / (1 + x)."""

    x = np.asarray(values, dtype=np.float32) * np.float32(exposure)
    return (x / (np.float32(1.0) + x)).astype(np.float32)
