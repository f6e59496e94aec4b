"""Tests for the residual-block least-squares problem."""

import numpy as np
import pytest

from facerecon.fitting.solver import Problem


def test_linear_problem_converges():
    problem = Problem(2)
    problem.add_residual_block(lambda x: x - np.array([1.0, -2.0]))
    problem.add_residual_block(lambda x: np.array([x[0] + x[1] + 1.0]))
    summary = problem.solve(np.zeros(2), 50)
    np.testing.assert_array_almost_equal(summary.x, [1.0, -2.0], decimal=5)
    assert summary.converged
    assert summary.termination_type == "CONVERGENCE"
    assert summary.final_cost < summary.initial_cost
    assert problem.num_residual_blocks == 2


def test_bounds_are_respected():
    problem = Problem(2)
    problem.add_residual_block(lambda x: x - np.array([5.0, -0.5]))
    problem.set_bounds(-1.0, 1.0)
    summary = problem.solve(np.zeros(2), 50)
    assert np.all(summary.x <= 1.0) and np.all(summary.x >= -1.0)
    np.testing.assert_array_almost_equal(summary.x, [1.0, -0.5], decimal=3)


def test_per_parameter_bounds():
    problem = Problem(2)
    problem.add_residual_block(lambda x: x - 3.0)
    problem.set_parameter_upper_bound(1, 2.0)
    problem.set_parameter_lower_bound(0, 0.0)
    lower, upper = problem.bounds
    np.testing.assert_array_equal(lower, [0.0, -np.inf])
    np.testing.assert_array_equal(upper, [np.inf, 2.0])
    summary = problem.solve(np.array([1.0, 1.0]), 50)
    np.testing.assert_array_almost_equal(summary.x, [3.0, 2.0], decimal=3)


def test_start_outside_bounds_is_clipped():
    problem = Problem(1)
    problem.add_residual_block(lambda x: x - 0.5)
    problem.set_bounds(-1.0, 1.0)
    summary = problem.solve(np.array([4.0]), 50)
    assert summary.initial_cost == pytest.approx(0.5 * 0.5 ** 2)
    assert summary.x[0] == pytest.approx(0.5, abs=1e-4)


def test_iteration_cap_is_not_an_error():
    problem = Problem(2)
    # Rosenbrock needs many steps from this start
    problem.add_residual_block(lambda x: np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]]))
    summary = problem.solve(np.array([-1.2, 1.0]), 2)
    assert summary.num_evaluations <= 2
    assert not summary.converged
    assert summary.x.shape == (2,)
    assert "least_squares" in summary.brief_report()


def test_cost():
    problem = Problem(1)
    problem.add_residual_block(lambda x: np.array([x[0], 2.0]))
    assert problem.cost(np.array([1.0])) == pytest.approx(2.5)


def test_empty_problem():
    with pytest.raises(ValueError, match="no residual blocks"):
        Problem(2).solve(np.zeros(2), 10)


def test_parameter_shape_checked():
    problem = Problem(2)
    problem.add_residual_block(lambda x: x)
    with pytest.raises(ValueError, match="Expected 2"):
        problem.solve(np.zeros(3), 10)


def test_invalid_construction_and_bounds():
    with pytest.raises(ValueError):
        Problem(0)
    with pytest.raises(ValueError, match="Empty bounds"):
        Problem(1).set_bounds(1.0, 1.0)
