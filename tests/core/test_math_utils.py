"""Tests for math_utils module."""

import numpy as np
import pytest

from facerecon.core.math_utils import (
    mat4_translation, mat4_rotation_x, mat4_rotation_y, mat4_rotation_z, mat4_euler_yxz,
    mat4_perspective, project, project_many, deg_to_rad, rotation_angle_between,
)


def _apply(m, p):
    return (m @ np.array([p[0], p[1], p[2], 1.0]))[:3]


def test_mat4_translation():
    m = mat4_translation(1, 2, 3)
    np.testing.assert_array_almost_equal(_apply(m, [0, 0, 0]), [1, 2, 3])


def test_mat4_rotation_x():
    m = mat4_rotation_x(np.pi / 2)
    np.testing.assert_array_almost_equal(_apply(m, [0, 1, 0]), [0, 0, 1], decimal=10)


def test_mat4_rotation_y():
    m = mat4_rotation_y(np.pi / 2)
    np.testing.assert_array_almost_equal(_apply(m, [0, 0, 1]), [1, 0, 0], decimal=10)


def test_mat4_rotation_z():
    m = mat4_rotation_z(np.pi / 2)
    np.testing.assert_array_almost_equal(_apply(m, [1, 0, 0]), [0, 1, 0], decimal=10)


def test_euler_yxz_composition_order():
    yaw, pitch, roll = 0.3, -0.2, 0.5
    expected = mat4_rotation_y(yaw) @ mat4_rotation_x(pitch) @ mat4_rotation_z(roll)
    np.testing.assert_array_almost_equal(mat4_euler_yxz(yaw, pitch, roll), expected)


def test_euler_yxz_roll_applied_first():
    # Roll 90° takes +X to +Y, then yaw 90° leaves +Y alone
    m = mat4_euler_yxz(np.pi / 2, 0.0, np.pi / 2)
    np.testing.assert_array_almost_equal(_apply(m, [1, 0, 0]), [0, 1, 0], decimal=10)


def test_mat4_perspective():
    m = mat4_perspective(deg_to_rad(45), 4 / 3, 1.0, 10.0)
    assert m[1, 1] == pytest.approx(1.0 / np.tan(deg_to_rad(22.5)))
    assert m[0, 0] == pytest.approx(m[1, 1] * 3 / 4)
    assert m[3, 2] == -1.0


def test_project_optical_axis_hits_viewport_center():
    proj = mat4_perspective(deg_to_rad(45), 640 / 480, 1.0, 10.0)
    view = mat4_translation(0, 0, -2)
    p = project(np.zeros(3), view, proj, (0, 0, 640, 480))
    np.testing.assert_array_almost_equal(p[:2], [320, 240])
    assert 0.0 < p[2] < 1.0


def test_project_y_axis_points_up():
    proj = mat4_perspective(deg_to_rad(45), 1.0, 1.0, 10.0)
    view = mat4_translation(0, 0, -2)
    p = project(np.array([0, 0.1, 0]), view, proj, (0, 0, 100, 100))
    assert p[1] > 50


def test_project_many_matches_project():
    proj = mat4_perspective(deg_to_rad(45), 640 / 480, 1.0, 10.0)
    view = mat4_translation(0.1, -0.2, -3) @ mat4_euler_yxz(0.2, 0.1, -0.1)
    pts = np.array([[0, 0, 0], [0.1, 0.2, 0.3], [-0.5, 0.4, -0.2]], dtype=np.float64)
    batch = project_many(pts, view, proj, (0, 0, 640, 480))
    for row, p in zip(batch, pts):
        np.testing.assert_array_almost_equal(row, project(p, view, proj, (0, 0, 640, 480)))


def test_deg_to_rad():
    assert deg_to_rad(180.0) == pytest.approx(np.pi)


def test_rotation_angle_between():
    a = mat4_rotation_y(0.1)
    b = mat4_rotation_y(0.35)
    assert abs(rotation_angle_between(a, b) - 0.25) < 1e-10
    assert rotation_angle_between(a, a) < 1e-6
