"""Reconstruction state: landmark constraints, model parameters, tuning."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from facerecon.constants import (
    CONTOUR_INITIAL_WEIGHT,
    CONTOUR_MAX_DISTANCE,
    EXPRESSION_PRIOR_DECAY,
    EXPRESSION_PRIOR_WEIGHT,
    FACS_DIM,
    IDENTITY_PRIOR_DECAY,
    IDENTITY_PRIOR_WEIGHT,
    INITIAL_TRANSLATION,
    NUM_CONTOUR_POINTS,
    OUTER_ITERATIONS,
    POSE_ITERATIONS,
    WEIGHT_ITERATION_STEP,
)


@dataclass
class Constraint2D:
    """An observed 2D landmark bound to a mesh vertex."""
    data: NDArray[np.float64]
    weight: float = 1.0
    vertex_index: int = -1

    def __post_init__(self):
        self.data = np.asarray(self.data, dtype=np.float64).reshape(2)

    def copy(self) -> "Constraint2D":
        return Constraint2D(self.data.copy(), self.weight, self.vertex_index)


@dataclass
class ModelParameters:
    """Current pose and weights of the fitted model.

    ``expression_weights`` is always ``expression_weights_facs @ basis``;
    update the reduced vector through :meth:`set_facs_weights` to keep the
    two in step.
    """
    identity_weights: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    expression_weights: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    expression_weights_facs: NDArray[np.float64] = field(default_factory=lambda: np.zeros(FACS_DIM))
    rotation: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    translation: NDArray[np.float64] = field(
        default_factory=lambda: np.array(INITIAL_TRANSLATION, dtype=np.float64))

    def set_facs_weights(self, facs: NDArray[np.float64], basis: NDArray[np.float64]) -> None:
        facs = np.asarray(facs, dtype=np.float64)
        if facs.shape[0] != basis.shape[0]:
            raise ValueError(
                f"Reduced expression vector has {facs.shape[0]} entries, "
                f"basis has {basis.shape[0]} rows"
            )
        self.expression_weights_facs = facs.copy()
        self.expression_weights = facs @ basis

    @property
    def pose(self) -> NDArray[np.float64]:
        """Rotation and translation packed as the 6-vector the pose solve uses."""
        return np.concatenate([self.rotation, self.translation])

    def set_pose(self, params: NDArray[np.float64]) -> None:
        self.rotation = np.array(params[:3], dtype=np.float64)
        self.translation = np.array(params[3:6], dtype=np.float64)


@dataclass
class ReconstructionParameters:
    """Image size and the ordered, mutable list of landmark constraints."""
    image_width: int = 0
    image_height: int = 0
    constraints: list[Constraint2D] = field(default_factory=list)


@dataclass
class OptimizationParameters:
    """Outer-loop schedule, inner iteration caps and annealing constants.

    ``error_threshold`` / ``error_diff_threshold`` enable an early exit on
    the RMS reprojection error (pixels); both are off by default so the
    full ``max_iterations`` schedule always runs.
    """
    max_iterations: int = OUTER_ITERATIONS
    pose_iterations: int = POSE_ITERATIONS
    weight_iteration_step: int = WEIGHT_ITERATION_STEP
    error_threshold: Optional[float] = None
    error_diff_threshold: Optional[float] = None

    identity_prior_weight: float = IDENTITY_PRIOR_WEIGHT
    expression_prior_weight: float = EXPRESSION_PRIOR_WEIGHT
    identity_prior_decay: float = IDENTITY_PRIOR_DECAY
    expression_prior_decay: float = EXPRESSION_PRIOR_DECAY

    num_contour_points: int = NUM_CONTOUR_POINTS
    contour_initial_weight: float = CONTOUR_INITIAL_WEIGHT
    contour_max_distance: float = CONTOUR_MAX_DISTANCE

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.pose_iterations < 1 or self.weight_iteration_step < 1:
            raise ValueError("Inner iteration caps must be >= 1")

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "OptimizationParameters":
        """Build from a config dict; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown optimization parameters: {', '.join(unknown)}")
        return cls(**d)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
