"""NumPy-backed 4x4 matrix utilities for the camera model.

Vectors are plain numpy arrays.  Matrices are 4x4 numpy arrays applied to
column vectors (``m @ v``), matching the OpenGL/GLM convention.
"""

import numpy as np
from numpy.typing import NDArray

# Type aliases
Vec3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]


def mat4_translation(x: float, y: float, z: float) -> Mat4:
    m = np.eye(4, dtype=np.float64)
    m[0, 3] = x
    m[1, 3] = y
    m[2, 3] = z
    return m


def mat4_rotation_x(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[1, 1] = c
    m[1, 2] = -s
    m[2, 1] = s
    m[2, 2] = c
    return m


def mat4_rotation_y(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = c
    m[0, 2] = s
    m[2, 0] = -s
    m[2, 2] = c
    return m


def mat4_rotation_z(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = c
    m[0, 1] = -s
    m[1, 0] = s
    m[1, 1] = c
    return m


def mat4_euler_yxz(yaw: float, pitch: float, roll: float) -> Mat4:
    """Rotation composed as ``Ry(yaw) @ Rx(pitch) @ Rz(roll)``.

    Same composition as GLM's ``eulerAngleYXZ``: roll is applied first,
    yaw last.
    """
    return mat4_rotation_y(yaw) @ mat4_rotation_x(pitch) @ mat4_rotation_z(roll)


def mat4_perspective(fov_rad: float, aspect: float, near: float, far: float) -> Mat4:
    """Create perspective projection matrix."""
    f = 1.0 / np.tan(fov_rad / 2.0)
    m = np.zeros((4, 4), dtype=np.float64)
    m[0, 0] = f / aspect
    m[1, 1] = f
    m[2, 2] = (far + near) / (near - far)
    m[2, 3] = (2 * far * near) / (near - far)
    m[3, 2] = -1.0
    return m


def project(
    p: Vec3,
    model_view: Mat4,
    projection: Mat4,
    viewport: tuple[float, float, float, float],
) -> Vec3:
    """Map object coordinates to window coordinates (``gluProject`` semantics).

    Returns ``(x, y, depth)`` with the origin at the viewport's lower-left
    corner and depth in ``[0, 1]`` for points inside the clip volume.
    No clipping is performed; points behind the camera give meaningless
    but finite values.
    """
    v = np.array([p[0], p[1], p[2], 1.0], dtype=np.float64)
    clip = projection @ (model_view @ v)
    ndc = clip[:3] / clip[3]
    win = ndc * 0.5 + 0.5
    return np.array([
        win[0] * viewport[2] + viewport[0],
        win[1] * viewport[3] + viewport[1],
        win[2],
    ], dtype=np.float64)


def project_many(
    points: NDArray[np.float64],
    model_view: Mat4,
    projection: Mat4,
    viewport: tuple[float, float, float, float],
) -> NDArray[np.float64]:
    """Vectorized :func:`project` for an ``(N, 3)`` array of points."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    homo = np.hstack([pts, np.ones((len(pts), 1))])
    clip = homo @ (projection @ model_view).T
    ndc = clip[:, :3] / clip[:, 3:4]
    win = ndc * 0.5 + 0.5
    out = np.empty_like(win)
    out[:, 0] = win[:, 0] * viewport[2] + viewport[0]
    out[:, 1] = win[:, 1] * viewport[3] + viewport[1]
    out[:, 2] = win[:, 2]
    return out


# Angles

def deg_to_rad(degrees: float) -> float:
    return degrees * np.pi / 180.0


def rotation_angle_between(a: Mat4, b: Mat4) -> float:
    """Angle in radians of the relative rotation ``a^T b`` (upper 3x3 only)."""
    r = a[:3, :3].T @ b[:3, :3]
    cos_theta = (np.trace(r) - 1.0) / 2.0
    return float(np.arccos(np.clip(cos_theta, -1.0, 1.0)))
