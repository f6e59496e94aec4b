"""Single-image face reconstruction by alternating least squares.

The reconstructor fits pose, expression and identity of a multilinear face
model to a set of 2D landmarks.  Each outer iteration runs a fixed stage
schedule::

    pose -> expression -> pose -> identity -> pose -> refresh

where each optimize stage is one bounded nonlinear least-squares solve and
the refresh stage recomputes the full mesh and re-derives which vertices the
contour landmarks correspond to.  Between iterations the prior trust
weights decay and the contour landmark weights move towards 1.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from facerecon.constants import (
    FACS_LOWER_BOUND,
    FACS_NEUTRAL_EPSILON,
    FACS_UPPER_BOUND,
    INITIAL_ROTATION,
    INITIAL_TRANSLATION,
    LEFT_PUPIL_PAIR,
    MIN_CONSTRAINT_COUNT,
    PUPIL_DISTANCE_SCALE,
    RIGHT_PUPIL_PAIR,
)
from facerecon.core.events import EventBus, EventType
from facerecon.core.mesh import FaceMesh
from facerecon.core.state import (
    Constraint2D,
    ModelParameters,
    OptimizationParameters,
    ReconstructionParameters,
)
from facerecon.fitting.camera import CameraParameters, project_points, view_matrix
from facerecon.fitting.contour import update_contour_correspondences
from facerecon.fitting.costs import ExpressionCost, IdentityCost, PoseCost, PriorCost
from facerecon.fitting.solver import Problem, SolveSummary
from facerecon.model.multilinear import MultilinearModel
from facerecon.model.prior import MultilinearModelPrior

logger = logging.getLogger(__name__)


class Stage(Enum):
    INIT = auto()
    OPTIMIZE_POSE = auto()
    OPTIMIZE_EXPRESSION = auto()
    OPTIMIZE_IDENTITY = auto()
    REFRESH = auto()
    DONE = auto()


OUTER_SCHEDULE = (
    Stage.OPTIMIZE_POSE,
    Stage.OPTIMIZE_EXPRESSION,
    Stage.OPTIMIZE_POSE,
    Stage.OPTIMIZE_IDENTITY,
    Stage.OPTIMIZE_POSE,
    Stage.REFRESH,
)


class SingleImageReconstructor:
    """Fits a :class:`MultilinearModel` to the landmarks of one image.

    Typical use::

        recon = SingleImageReconstructor()
        recon.load_model(model_path)
        recon.load_priors(prior_id_path, prior_exp_path)
        recon.set_mesh(template_mesh)
        recon.set_image_size(640, 480)
        recon.set_indices(landmark_vertex_indices)
        recon.set_constraints(constraints)
        recon.set_contour_indices(contour_groups)
        recon.reconstruct()
        R, T = recon.rotation, recon.translation
    """

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self.model: Optional[MultilinearModel] = None
        self.prior: Optional[MultilinearModelPrior] = None
        self.mesh: Optional[FaceMesh] = None
        self.indices: list[int] = []
        self.contour_indices: list[list[int]] = []

        self.params_cam: Optional[CameraParameters] = None
        self.params_model = ModelParameters()
        self.params_recon = ReconstructionParameters()
        self.params_opt = OptimizationParameters()

        self.stage = Stage.INIT
        self.iterations_run = 0
        self._events = event_bus

    # ── Configuration ─────────────────────────────────────────────────

    def load_model(self, path: Path) -> None:
        self.model = MultilinearModel.from_file(path)

    def set_model(self, model: MultilinearModel) -> None:
        self.model = model

    def load_priors(self, identity_path: Path, expression_path: Path) -> None:
        self.prior = MultilinearModelPrior.load(identity_path, expression_path)

    def set_prior(self, prior: MultilinearModelPrior) -> None:
        self.prior = prior

    def set_indices(self, indices: Sequence[int]) -> None:
        self.indices = [int(i) for i in indices]

    def set_constraints(self, constraints: Sequence[Constraint2D]) -> None:
        self.params_recon.constraints = [c.copy() for c in constraints]

    def set_contour_indices(self, contour_points: Sequence[Sequence[int]]) -> None:
        self.contour_indices = [[int(i) for i in group] for group in contour_points]

    def set_image_size(self, width: int, height: int) -> None:
        self.params_recon.image_width = int(width)
        self.params_recon.image_height = int(height)

    def set_mesh(self, mesh: FaceMesh) -> None:
        self.mesh = mesh.clone()

    def set_optimization_parameters(self, params: OptimizationParameters) -> None:
        self.params_opt = params

    # ── Results ───────────────────────────────────────────────────────

    @property
    def rotation(self) -> NDArray[np.float64]:
        return self.params_model.rotation

    @property
    def translation(self) -> NDArray[np.float64]:
        return self.params_model.translation

    @property
    def identity_weights(self) -> NDArray[np.float64]:
        return self.params_model.identity_weights

    @property
    def expression_weights(self) -> NDArray[np.float64]:
        """Reduced (FACS-like) expression weights."""
        return self.params_model.expression_weights_facs

    @property
    def geometry(self) -> NDArray[np.float64]:
        return self.model.geometry

    @property
    def camera_parameters(self) -> Optional[CameraParameters]:
        return self.params_cam

    @property
    def constraints(self) -> list[Constraint2D]:
        return self.params_recon.constraints

    def updated_indices(self) -> list[int]:
        """Vertex bound to each constraint after contour updates."""
        return [c.vertex_index for c in self.params_recon.constraints]

    def reprojection_error(self) -> float:
        """RMS pixel distance between constraints and their projected vertices."""
        cons = self.params_recon.constraints
        if not cons or self.params_cam is None:
            return float("nan")
        vidx = np.array([c.vertex_index for c in cons], dtype=np.intp)
        points = self.model.geometry.reshape(-1, 3)[vidx]
        model_view = view_matrix(self.params_model.rotation, self.params_model.translation)
        projected = project_points(points, model_view, self.params_cam)[:, :2]
        observed = np.array([c.data for c in cons])
        return float(np.sqrt(np.mean(np.sum((projected - observed) ** 2, axis=1))))

    # ── Reconstruction ────────────────────────────────────────────────

    def reconstruct(self) -> bool:
        """Run the full alternating optimization.

        Raises ``RuntimeError`` when the model, priors or mesh are missing
        and ``ValueError`` for inconsistent configuration.  Inner solves
        that stop on their iteration cap are accepted as they are.
        """
        self._check_preconditions()
        logger.info("Reconstruction begins.")
        self.stage = Stage.INIT
        self._initialize()

        opt = self.params_opt
        self._publish(EventType.RECONSTRUCTION_STARTED,
                      num_constraints=len(self.params_recon.constraints),
                      max_iterations=opt.max_iterations)

        prev_error: Optional[float] = None
        error = float("nan")
        self.iterations_run = 0
        for iteration in range(1, opt.max_iterations + 1):
            for stage in OUTER_SCHEDULE:
                self.stage = stage
                self._run_stage(stage, iteration)
            self._anneal()

            self.iterations_run = iteration
            error = self.reprojection_error()
            logger.info("Iteration %d: reprojection error %.4f px", iteration, error)
            self._publish(EventType.ITERATION_FINISHED,
                          iteration=iteration, error=error,
                          weight_identity=self.prior.weight_identity,
                          weight_expression=self.prior.weight_expression,
                          contour_weights=[c.weight for c in self._contour_constraints()])
            if self._converged(error, prev_error):
                logger.info("Converged after %d iterations", iteration)
                break
            prev_error = error

        self.stage = Stage.DONE
        self.model.apply_weights(self.params_model.identity_weights,
                                 self.params_model.expression_weights)
        logger.info("Reconstruction done.")
        self._publish(EventType.RECONSTRUCTION_FINISHED,
                      iterations=self.iterations_run, error=error)
        return True

    def _run_stage(self, stage: Stage, iteration: int) -> None:
        if stage is Stage.OPTIMIZE_POSE:
            self.optimize_for_pose(self.params_opt.pose_iterations)
        elif stage is Stage.OPTIMIZE_EXPRESSION:
            self.optimize_for_expression(iteration)
        elif stage is Stage.OPTIMIZE_IDENTITY:
            self.optimize_for_identity(iteration)
        elif stage is Stage.REFRESH:
            self.refresh(iteration)
        else:
            raise ValueError(f"Stage {stage.name} is not part of the outer schedule")

    def _check_preconditions(self) -> None:
        if self.model is None:
            raise RuntimeError("No multilinear model loaded")
        if self.prior is None:
            raise RuntimeError("No priors loaded")
        if self.mesh is None:
            raise RuntimeError("No template mesh set")

        recon = self.params_recon
        if recon.image_width <= 0 or recon.image_height <= 0:
            raise ValueError(
                f"Image size must be positive, got {recon.image_width}x{recon.image_height}"
            )
        n_cons = len(recon.constraints)
        if len(self.indices) != n_cons:
            raise ValueError(
                f"{len(self.indices)} vertex indices given for {n_cons} constraints"
            )
        if n_cons < MIN_CONSTRAINT_COUNT:
            raise ValueError(
                f"At least {MIN_CONSTRAINT_COUNT} constraints are required "
                f"(pupil landmarks {LEFT_PUPIL_PAIR} and {RIGHT_PUPIL_PAIR}), got {n_cons}"
            )
        if self.params_opt.num_contour_points > n_cons:
            raise ValueError(
                f"{self.params_opt.num_contour_points} contour points exceed {n_cons} constraints"
            )

        n_verts = self.model.num_vertices
        if self.mesh.vertex_count != n_verts:
            raise ValueError(
                f"Mesh has {self.mesh.vertex_count} vertices, model has {n_verts}"
            )
        bad = [i for i in self.indices if not 0 <= i < n_verts]
        bad += [i for group in self.contour_indices for i in group if not 0 <= i < n_verts]
        if bad:
            raise ValueError(f"Vertex indices out of range [0, {n_verts}): {bad[:10]}")

        identity, expression = self.prior.identity, self.prior.expression
        if identity.dims != self.model.identity_dims:
            raise ValueError(
                f"Identity prior has {identity.dims} dims, model has {self.model.identity_dims}"
            )
        basis = expression.basis
        if basis.shape[0] < 1 or basis.shape[1] != self.model.expression_dims:
            raise ValueError(
                f"Expression basis is {basis.shape[0]}x{basis.shape[1]}, "
                f"model has {self.model.expression_dims} expression dims"
            )
        if expression.dims not in basis.shape:
            raise ValueError(
                f"Expression prior has {expression.dims} dims, expected "
                f"{basis.shape[0]} (reduced) or {basis.shape[1]} (native)"
            )

    def _initialize(self) -> None:
        recon = self.params_recon
        opt = self.params_opt
        self.params_cam = CameraParameters.from_image_size(recon.image_width, recon.image_height)

        # Neutral face, average identity
        basis = self.prior.expression_basis
        facs = np.full(basis.shape[0], FACS_NEUTRAL_EPSILON)
        facs[0] = 1.0
        self.params_model.set_facs_weights(facs, basis)
        self.params_model.identity_weights = self.prior.identity.average.copy()

        self.params_model.rotation = np.array(INITIAL_ROTATION, dtype=np.float64)
        self.params_model.translation = np.array(INITIAL_TRANSLATION, dtype=np.float64)

        self.model.apply_weights(self.params_model.identity_weights,
                                 self.params_model.expression_weights)

        for constraint, vidx in zip(recon.constraints, self.indices):
            constraint.vertex_index = vidx

        # Contour landmarks start down-weighted
        for constraint in self._contour_constraints():
            constraint.weight = opt.contour_initial_weight

        self.prior.reset_weights(opt.identity_prior_weight, opt.expression_prior_weight)

    # ── Stages ────────────────────────────────────────────────────────

    def optimize_for_pose(self, max_iterations: int) -> SolveSummary:
        problem = Problem(6)
        for constraint in self.params_recon.constraints:
            model_i = self.model.project([constraint.vertex_index])
            problem.add_residual_block(PoseCost(model_i, constraint, self.params_cam))

        summary = problem.solve(self.params_model.pose, max_iterations)
        old_r, old_t = self.params_model.rotation, self.params_model.translation
        self.params_model.set_pose(summary.x)
        logger.debug(summary.brief_report())
        logger.debug("R: %s -> %s", old_r, self.params_model.rotation)
        logger.debug("T: %s -> %s", old_t, self.params_model.translation)
        self._publish_solve(Stage.OPTIMIZE_POSE, summary)
        return summary

    def optimize_for_expression(self, iteration: int) -> SolveSummary:
        model_view = view_matrix(self.params_model.rotation, self.params_model.translation)
        basis = self.prior.expression_basis
        params = self.params_model.expression_weights_facs.copy()

        problem = Problem(len(params))
        for constraint in self.params_recon.constraints:
            model_i = self.model.project([constraint.vertex_index])
            problem.add_residual_block(
                ExpressionCost(model_i, constraint, model_view, basis, self.params_cam))

        expression = self.prior.expression
        native_prior = expression.dims == basis.shape[1]
        problem.add_residual_block(PriorCost(
            expression.average, expression.inv_covariance,
            self.prior.weight_expression * self._prior_scale(),
            basis if native_prior else None,
        ))
        problem.set_bounds(FACS_LOWER_BOUND, FACS_UPPER_BOUND)

        summary = problem.solve(params, iteration * self.params_opt.weight_iteration_step)
        logger.debug(summary.brief_report())
        logger.debug("Wexp_FACS: %s -> %s", params, summary.x)
        self.params_model.set_facs_weights(summary.x, basis)
        self.model.apply_expression_weights(self.params_model.expression_weights)
        self._publish_solve(Stage.OPTIMIZE_EXPRESSION, summary, iteration)
        return summary

    def optimize_for_identity(self, iteration: int) -> SolveSummary:
        model_view = view_matrix(self.params_model.rotation, self.params_model.translation)
        params = self.params_model.identity_weights.copy()

        problem = Problem(len(params))
        for constraint in self.params_recon.constraints:
            model_i = self.model.project([constraint.vertex_index])
            problem.add_residual_block(
                IdentityCost(model_i, constraint, model_view, self.params_cam))

        identity = self.prior.identity
        problem.add_residual_block(PriorCost(
            identity.average, identity.inv_covariance,
            self.prior.weight_identity * self._prior_scale(),
        ))

        summary = problem.solve(params, iteration * self.params_opt.weight_iteration_step)
        logger.debug(summary.brief_report())
        logger.debug("Wid: %s -> %s", params, summary.x)
        self.params_model.identity_weights = summary.x.copy()
        self.model.apply_identity_weights(self.params_model.identity_weights)
        self._publish_solve(Stage.OPTIMIZE_IDENTITY, summary, iteration)
        return summary

    def refresh(self, iteration: int = 0) -> list[int]:
        """Recompute the full mesh and re-derive contour correspondences."""
        self.model.apply_weights(self.params_model.identity_weights,
                                 self.params_model.expression_weights)
        self.mesh.update_vertices(self.model.geometry)
        self.mesh.compute_normals()
        changed = update_contour_correspondences(
            self.mesh,
            self.contour_indices,
            self.params_recon.constraints,
            self.params_model.rotation,
            self.params_model.translation,
            self.params_cam,
            self.params_opt.num_contour_points,
            self.params_opt.contour_max_distance,
        )
        if changed:
            logger.debug("Contour bindings changed for points %s", changed)
        self._publish(EventType.CONTOURS_UPDATED, iteration=iteration, changed=changed)
        return changed

    # ── Helpers ───────────────────────────────────────────────────────

    def _contour_constraints(self) -> list[Constraint2D]:
        return self.params_recon.constraints[:self.params_opt.num_contour_points]

    def _anneal(self) -> None:
        opt = self.params_opt
        self.prior.anneal(opt.identity_prior_decay, opt.expression_prior_decay)
        for constraint in self._contour_constraints():
            constraint.weight = float(np.sqrt(constraint.weight))

    def pupil_distance(self) -> float:
        cons = self.params_recon.constraints
        left = 0.5 * (cons[LEFT_PUPIL_PAIR[0]].data + cons[LEFT_PUPIL_PAIR[1]].data)
        right = 0.5 * (cons[RIGHT_PUPIL_PAIR[0]].data + cons[RIGHT_PUPIL_PAIR[1]].data)
        return float(np.linalg.norm(left - right))

    def _prior_scale(self) -> float:
        # Inter-pupillary distance in units of 100 px
        return self.pupil_distance() / PUPIL_DISTANCE_SCALE

    def _converged(self, error: float, prev_error: Optional[float]) -> bool:
        opt = self.params_opt
        if opt.error_threshold is not None and error < opt.error_threshold:
            return True
        if (opt.error_diff_threshold is not None and prev_error is not None
                and abs(prev_error - error) < opt.error_diff_threshold):
            return True
        return False

    def _publish(self, event_type: EventType, **data) -> None:
        if self._events is not None:
            self._events.publish(event_type, **data)

    def _publish_solve(self, stage: Stage, summary: SolveSummary, iteration: int = 0) -> None:
        self._publish(EventType.SOLVE_FINISHED, stage=stage.name, iteration=iteration,
                      summary=summary)
