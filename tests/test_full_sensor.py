from __future__ import annotations

import numpy as np
import pytest

from threefr_exr.color.srgb import linear_to_srgb
from threefr_exr.decode import full_sensor
from threefr_exr.decode.base import MissingDependencyError
from threefr_exr.decode.full_sensor import (
    _SRGB_TO_XYZ,
    bayer_pattern,
    blend_highlights,
    camera_to_srgb_matrix,
    demosaic,
    develop_full_sensor,
    encode_gamma,
)


def _rggb_colors(h: int, w: int) -> np.ndarray:
    colors = np.empty((h, w), dtype=np.uint8)
    colors[0::2, 0::2] = 0
    colors[0::2, 1::2] = 1
    colors[1::2, 0::2] = 3
    colors[1::2, 1::2] = 2
    return colors


def _develop(raw: np.ndarray, colors: np.ndarray, **kwargs) -> np.ndarray:
    args = dict(
        raw_image=raw,
        raw_colors=colors,
        black_level_per_channel=[0, 0, 0, 0],
        white_level=4095,
        camera_whitebalance=[1.0, 1.0, 1.0, 1.0],
        rgb_xyz_matrix=np.zeros((4, 3)),
    )
    args.update(kwargs)
    return develop_full_sensor(**args)


def test_gamma_unit_pair_is_identity() -> None:
    x = np.linspace(0.0, 1.0, 101, dtype=np.float32)
    assert np.allclose(encode_gamma(x, 1.0, 1.0), x, atol=1e-6)


def test_default_gamma_tracks_srgb_curve() -> None:
    x = np.linspace(0.0, 1.0, 1001, dtype=np.float32)
    assert np.allclose(encode_gamma(x, 2.4, 12.92), linear_to_srgb(x), atol=3e-3)


def test_gamma_without_toe_is_pure_power() -> None:
    x = np.linspace(0.0, 1.0, 11, dtype=np.float32)
    assert np.allclose(encode_gamma(x, 2.2, 0.0), x ** (1.0 / 2.2), atol=1e-6)


def test_bayer_pattern_follows_crop_phase() -> None:
    colors = _rggb_colors(6, 8)
    assert bayer_pattern(colors) == "RGGB"
    assert bayer_pattern(colors[:, 1:]) == "GRBG"
    assert bayer_pattern(colors[1:, :]) == "GBRG"
    assert bayer_pattern(colors[1:, 1:]) == "BGGR"


def test_bayer_pattern_rejects_non_bayer_layout() -> None:
    with pytest.raises(ValueError):
        bayer_pattern(np.zeros((4, 4), dtype=np.uint8))


@pytest.mark.parametrize("top,left", [(0, 0), (0, 1), (1, 0), (1, 1)])
def test_demosaic_reproduces_flat_color_planes(top: int, left: int) -> None:
    pytest.importorskip("cv2")
    colors = _rggb_colors(12, 14)[top:, left:]
    cfa = np.where(colors == 3, 1, colors)
    plane_values = np.array([0.2, 0.5, 0.8], dtype=np.float32)
    mosaic = plane_values[cfa]

    rgb = demosaic(mosaic, bayer_pattern(colors), "AHD")
    assert rgb.shape == colors.shape + (3,)
    assert np.allclose(rgb[2:-2, 2:-2], plane_values, atol=1e-3)


def test_demosaic_keeps_values_above_white() -> None:
    pytest.importorskip("cv2")
    colors = _rggb_colors(8, 8)
    mosaic = np.where(colors == 0, 2.0, 0.5).astype(np.float32)
    rgb = demosaic(mosaic, "RGGB", "LINEAR")
    assert np.allclose(rgb[2:-2, 2:-2, 0], 2.0, atol=1e-3)


def test_demosaic_algorithm_changes_interpolation() -> None:
    pytest.importorskip("cv2")
    mosaic = np.random.default_rng(3).random((16, 16)).astype(np.float32)
    linear = demosaic(mosaic, "RGGB", "LINEAR")
    edge_aware = demosaic(mosaic, "RGGB", "AHD")
    assert not np.array_equal(linear, edge_aware)


def test_demosaic_without_opencv(monkeypatch) -> None:
    monkeypatch.setattr(full_sensor, "cv2", None)
    with pytest.raises(MissingDependencyError):
        demosaic(np.zeros((4, 4), dtype=np.float32), "RGGB")


def test_blend_highlights_keeps_lightness_and_pulls_chroma() -> None:
    rgb = np.array([[[2.0, 0.5, 0.5], [0.4, 0.5, 0.6]]], dtype=np.float32)
    out = blend_highlights(rgb)

    assert np.array_equal(out[0, 1], rgb[0, 1])
    assert out[0, 0].sum() == pytest.approx(3.0, abs=1e-5)
    assert np.ptp(out[0, 0]) < np.ptp(rgb[0, 0])


def test_camera_matrix_identity_for_srgb_camera() -> None:
    matrix = camera_to_srgb_matrix(np.linalg.inv(_SRGB_TO_XYZ))
    assert np.allclose(matrix, np.eye(3), atol=1e-5)


def test_camera_matrix_keeps_white_neutral() -> None:
    cam_xyz = np.array(
        [
            [0.9, -0.3, -0.1],
            [-0.4, 1.3, 0.1],
            [-0.1, 0.2, 0.6],
            [0.0, 0.0, 0.0],
        ]
    )
    matrix = camera_to_srgb_matrix(cam_xyz)
    assert np.allclose(matrix @ np.ones(3), np.ones(3), atol=1e-5)


def test_camera_matrix_falls_back_to_identity() -> None:
    assert np.array_equal(camera_to_srgb_matrix(np.zeros((4, 3))), np.eye(3, dtype=np.float32))


def test_develop_full_sensor_gray_card() -> None:
    pytest.importorskip("cv2")
    colors = _rggb_colors(8, 10)
    raw = np.full((8, 10), 600, dtype=np.uint16)

    out = _develop(
        raw,
        colors,
        black_level_per_channel=[100, 100, 100, 100],
        white_level=1100,
        camera_whitebalance=[1.0, 1.0, 1.0, 0.0],
        gamma=(1.0, 1.0),
    )

    assert out.shape == (8, 10, 3)
    assert out.dtype == np.uint16
    assert np.all(np.abs(out[2:-2, 2:-2].astype(np.int32) - 32768) <= 1)


def test_develop_full_sensor_applies_white_balance_and_clips() -> None:
    pytest.importorskip("cv2")
    colors = _rggb_colors(8, 8)
    raw = np.full((8, 8), 500, dtype=np.uint16)

    out = _develop(raw, colors, white_level=1000, camera_whitebalance=[4.0, 1.0, 1.0, 1.0])

    # red gain 4 pushes 0.5 to 2.0, clipped to white
    inner = out[2:-2, 2:-2]
    assert np.all(inner[..., 0] == 65535)
    assert np.all(inner[..., 0] > inner[..., 1])


def test_develop_full_sensor_honors_decode_settings() -> None:
    pytest.importorskip("cv2")
    colors = _rggb_colors(16, 16)
    raw = np.random.default_rng(11).integers(0, 4096, size=(16, 16)).astype(np.uint16)
    hot_wb = [2.5, 1.0, 1.8, 1.0]

    base = _develop(raw, colors, camera_whitebalance=hot_wb)
    assert not np.array_equal(base, _develop(raw, colors, camera_whitebalance=hot_wb, demosaic_algorithm="LINEAR"))
    assert not np.array_equal(base, _develop(raw, colors, camera_whitebalance=hot_wb, gamma=(1.0, 1.0)))
    assert not np.array_equal(base, _develop(raw, colors, camera_whitebalance=hot_wb, highlight_mode="blend"))
    assert not np.array_equal(base, _develop(raw, colors, camera_whitebalance=hot_wb, highlight_mode="ignore"))


def test_develop_full_sensor_monochrome() -> None:
    raw = np.array([[0, 1000], [2000, 4000]], dtype=np.uint16)
    out = develop_full_sensor(
        raw_image=raw,
        raw_colors=None,
        black_level_per_channel=[0, 0, 0, 0],
        white_level=4000,
        camera_whitebalance=None,
        rgb_xyz_matrix=None,
        monochrome=True,
    )
    assert out.shape == (2, 2)
    assert out[0, 0] == 0
    assert out[1, 1] == 65535
    assert out[0, 1] < out[1, 0] < out[1, 1]
