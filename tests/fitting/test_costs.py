"""Tests for least-squares residual functors."""

import numpy as np
import pytest

from facerecon.core.state import Constraint2D
from facerecon.fitting.camera import CameraParameters, project_point, view_matrix
from facerecon.fitting.costs import ExpressionCost, IdentityCost, PoseCost, PriorCost
from facerecon.model.multilinear import MultilinearModel


def _make_vertex_model(wid=(1.0, 0.0), wexp=(1.0, 0.0)):
    """Single-vertex model: base point (0.1, 0.2, 0), identity mode moves X, expression mode moves Y."""
    core = np.zeros((2, 2, 3))
    core[0, 0] = [0.1, 0.2, 0.0]
    core[1, 0] = [0.05, 0.0, 0.0]
    core[0, 1] = [0.0, 0.05, 0.0]
    model = MultilinearModel(core)
    model.apply_weights(np.array(wid), np.array(wexp))
    return model


@pytest.fixture
def camera():
    return CameraParameters.from_image_size(640, 480)


def _observe(point, rotation, translation, camera):
    return project_point(point, view_matrix(rotation, translation), camera)[:2]


def test_pose_cost_zero_at_true_pose(camera):
    model = _make_vertex_model()
    pose = np.array([0.1, -0.05, 0.02, 0.01, 0.0, -2.0])
    target = _observe(model.geometry, pose[:3], pose[3:], camera)
    cost = PoseCost(model, Constraint2D(target), camera)
    np.testing.assert_array_almost_equal(cost(pose), [0.0, 0.0])


def test_pose_cost_scaled_by_weight(camera):
    model = _make_vertex_model()
    pose = np.array([0.0, 0.0, 0.0, 0.0, 0.0, -2.0])
    target = _observe(model.geometry, pose[:3], pose[3:], camera) + [3.0, -4.0]
    full = PoseCost(model, Constraint2D(target, weight=1.0), camera)(pose)
    half = PoseCost(model, Constraint2D(target, weight=0.5), camera)(pose)
    np.testing.assert_array_almost_equal(full, [-3.0, 4.0])
    np.testing.assert_array_almost_equal(half, 0.5 * full)


def test_cost_captures_constraint_by_value(camera):
    model = _make_vertex_model()
    constraint = Constraint2D([100.0, 100.0], weight=0.9)
    cost = PoseCost(model, constraint, camera)
    constraint.weight = 1.0
    constraint.data[0] = 0.0
    assert cost.weight == 0.9
    assert cost.target[0] == 100.0


def test_landmark_cost_needs_single_vertex(camera):
    model = MultilinearModel(np.zeros((2, 2, 6)))
    model.apply_weights(np.ones(2), np.ones(2))
    with pytest.raises(ValueError, match="single-vertex"):
        PoseCost(model, Constraint2D([0, 0]), camera)


def test_identity_cost_zero_at_true_weights(camera):
    truth = _make_vertex_model(wid=(1.0, 0.6))
    mv = view_matrix(np.zeros(3), np.array([0.0, 0.0, -2.0]))
    target = project_point(truth.geometry, mv, camera)[:2]

    model = _make_vertex_model(wid=(1.0, 0.0))
    cost = IdentityCost(model, Constraint2D(target), mv, camera)
    np.testing.assert_array_almost_equal(cost(np.array([1.0, 0.6])), [0.0, 0.0])
    assert abs(cost(np.array([1.0, 0.0]))[0]) > 1.0
    # Evaluation leaves the model untouched
    np.testing.assert_array_equal(model.identity_weights, [1.0, 0.0])


def test_expression_cost_maps_through_basis(camera):
    truth = _make_vertex_model(wexp=(1.0, 0.4))
    mv = view_matrix(np.zeros(3), np.array([0.0, 0.0, -2.0]))
    target = project_point(truth.geometry, mv, camera)[:2]

    basis = np.array([[1.0, 0.0], [0.0, 2.0]])
    model = _make_vertex_model()
    cost = ExpressionCost(model, Constraint2D(target), mv, basis, camera)
    # Reduced 0.2 maps to native 0.4
    np.testing.assert_array_almost_equal(cost(np.array([1.0, 0.2])), [0.0, 0.0])


def test_prior_cost_value():
    cost = PriorCost(np.array([1.0, 0.0]), np.diag([4.0, 1.0]), weight=2.0)
    # d = (0.5, 1): d^T S d = 4*0.25 + 1 = 2
    np.testing.assert_array_almost_equal(cost(np.array([1.5, 1.0])), [2.0])
    np.testing.assert_array_equal(cost(np.array([1.0, 0.0])), [0.0])


def test_prior_cost_with_basis():
    basis = np.array([[1.0, 1.0, 0.0]])
    cost = PriorCost(np.zeros(3), np.eye(3), weight=1.0, basis=basis)
    # Reduced 2 -> native (2, 2, 0), squared distance 8
    np.testing.assert_array_almost_equal(cost(np.array([2.0])), [np.sqrt(8.0)])


def test_prior_cost_zero_weight():
    cost = PriorCost(np.zeros(2), np.eye(2), weight=0.0)
    np.testing.assert_array_equal(cost(np.array([5.0, 5.0])), [0.0])
