"""Fixed-FOV perspective camera used to compare the model with 2D landmarks."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from facerecon.constants import CAMERA_FAR, CAMERA_FOV_Y_DEG, CAMERA_NEAR, DEFAULT_FOCAL_LENGTH
from facerecon.core.math_utils import (
    Mat4, Vec3,
    deg_to_rad, mat4_euler_yxz, mat4_perspective, mat4_translation,
    project, project_many,
)


@dataclass(frozen=True)
class CameraParameters:
    """Image geometry of the camera.

    ``focal_length`` is carried for completeness but the projector always
    uses a 45° vertical field of view with aspect = width / height.
    """
    focal_length: tuple[float, float]
    image_plane_center: tuple[float, float]
    image_size: tuple[int, int]
    projection: Mat4 = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        width, height = self.image_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size must be positive, got {width}x{height}")
        object.__setattr__(self, "projection", mat4_perspective(
            deg_to_rad(CAMERA_FOV_Y_DEG), width / height, CAMERA_NEAR, CAMERA_FAR,
        ))

    @classmethod
    def from_image_size(cls, width: int, height: int) -> "CameraParameters":
        return cls(
            focal_length=DEFAULT_FOCAL_LENGTH,
            image_plane_center=(width * 0.5, height * 0.5),
            image_size=(int(width), int(height)),
        )

    @property
    def viewport(self) -> tuple[float, float, float, float]:
        return (0.0, 0.0, float(self.image_size[0]), float(self.image_size[1]))


def rotation_matrix(rotation: NDArray[np.float64]) -> Mat4:
    """4x4 rotation from ``(yaw, pitch, roll)`` using Y-X-Z composition."""
    return mat4_euler_yxz(rotation[0], rotation[1], rotation[2])


def view_matrix(rotation: NDArray[np.float64], translation: NDArray[np.float64]) -> Mat4:
    """Model-view transform: rotate first, then translate."""
    return mat4_translation(translation[0], translation[1], translation[2]) @ rotation_matrix(rotation)


def project_point(p: Vec3, model_view: Mat4, camera: CameraParameters) -> Vec3:
    """Window coordinates ``(x, y, depth)`` of *p* seen through *model_view*."""
    return project(p, model_view, camera.projection, camera.viewport)


def project_points(
    points: NDArray[np.float64],
    model_view: Mat4,
    camera: CameraParameters,
) -> NDArray[np.float64]:
    """Project an ``(N, 3)`` array of points; returns ``(N, 3)`` window coordinates."""
    return project_many(points, model_view, camera.projection, camera.viewport)
