"""Residual functors evaluated by the least-squares solver.

Every functor maps a candidate parameter vector to a small residual vector
and is a pure function of that vector: landmark functors hold a private
single-vertex model (see :meth:`MultilinearModel.project`) and only call
its non-mutating ``evaluate_*`` methods, so blocks can be evaluated in any
order, or concurrently, without sharing state.

Landmark residuals are ``(projected - observed) * weight`` in pixels.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from facerecon.core.math_utils import Mat4
from facerecon.core.state import Constraint2D
from facerecon.fitting.camera import CameraParameters, project_point, view_matrix
from facerecon.model.multilinear import MultilinearModel


def _weighted_pixel_residual(
    point: NDArray[np.float64],
    model_view: Mat4,
    camera: CameraParameters,
    target: NDArray[np.float64],
    weight: float,
) -> NDArray[np.float64]:
    q = project_point(point, model_view, camera)
    return (q[:2] - target) * weight


class _LandmarkCost:
    num_residuals = 2

    def __init__(self, model: MultilinearModel, constraint: Constraint2D,
                 camera: CameraParameters) -> None:
        if model.num_vertices != 1:
            raise ValueError(
                f"Landmark residual needs a single-vertex model, got {model.num_vertices} vertices"
            )
        self.model = model
        self.camera = camera
        # Captured by value; annealing between solves does not reach a built block
        self.target = constraint.data.copy()
        self.weight = float(constraint.weight)


class PoseCost(_LandmarkCost):
    """Residual over the 6-vector ``(yaw, pitch, roll, tx, ty, tz)``.

    The model geometry is frozen at construction; only the view changes.
    """

    def __init__(self, model: MultilinearModel, constraint: Constraint2D,
                 camera: CameraParameters) -> None:
        super().__init__(model, constraint, camera)
        self.point = model.geometry[:3].copy()

    def __call__(self, params: NDArray[np.float64]) -> NDArray[np.float64]:
        model_view = view_matrix(params[:3], params[3:6])
        return _weighted_pixel_residual(self.point, model_view, self.camera,
                                        self.target, self.weight)


class IdentityCost(_LandmarkCost):
    """Residual over the identity weights with expression and view held fixed."""

    def __init__(self, model: MultilinearModel, constraint: Constraint2D,
                 model_view: Mat4, camera: CameraParameters) -> None:
        super().__init__(model, constraint, camera)
        self.model_view = np.array(model_view, dtype=np.float64)

    def __call__(self, wid: NDArray[np.float64]) -> NDArray[np.float64]:
        tm = self.model.evaluate_identity(wid)
        return _weighted_pixel_residual(tm[:3], self.model_view, self.camera,
                                        self.target, self.weight)


class ExpressionCost(_LandmarkCost):
    """Residual over the reduced expression weights.

    The candidate vector is mapped to the model's native expression space
    through ``basis`` before evaluation; identity and view are held fixed.
    """

    def __init__(self, model: MultilinearModel, constraint: Constraint2D,
                 model_view: Mat4, basis: NDArray[np.float64],
                 camera: CameraParameters) -> None:
        super().__init__(model, constraint, camera)
        self.model_view = np.array(model_view, dtype=np.float64)
        self.basis = basis

    def __call__(self, wexp_facs: NDArray[np.float64]) -> NDArray[np.float64]:
        tm = self.model.evaluate_expression(wexp_facs @ self.basis)
        return _weighted_pixel_residual(tm[:3], self.model_view, self.camera,
                                        self.target, self.weight)


class PriorCost:
    """Weighted Mahalanobis distance of the weights from their prior.

    ``sqrt(weight * (w - prior)^T inv_cov (w - prior))``.  When ``basis``
    is given the parameter vector lives in the reduced space and is mapped
    through it before comparison with a native-space prior.
    """
    num_residuals = 1

    def __init__(self, prior_vec: NDArray[np.float64], inv_cov_mat: NDArray[np.float64],
                 weight: float, basis: Optional[NDArray[np.float64]] = None) -> None:
        self.prior_vec = prior_vec
        self.inv_cov_mat = inv_cov_mat
        self.weight = float(weight)
        self.basis = basis

    def __call__(self, w: NDArray[np.float64]) -> NDArray[np.float64]:
        if self.basis is not None:
            w = w @ self.basis
        diff = w - self.prior_vec
        # Rounding can push an exact-zero distance slightly negative
        value = max(self.weight * float(diff @ (self.inv_cov_mat @ diff)), 0.0)
        return np.array([np.sqrt(value)])
