"""Nonlinear least-squares problem assembled from residual blocks.

A :class:`Problem` stacks the outputs of its residual blocks into a single
residual vector over one shared parameter vector and minimizes
``0.5 * ||r(x)||^2`` with SciPy's trust-region reflective solver.  The
Jacobian is estimated with central finite differences, and per-parameter
box bounds are supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import least_squares

ResidualBlock = Callable[[NDArray[np.float64]], NDArray[np.float64]]

# least_squares status codes
_STATUS_TEXT = {
    -1: "FAILURE",
    0: "NO_CONVERGENCE",
    1: "CONVERGENCE",
    2: "CONVERGENCE",
    3: "CONVERGENCE",
    4: "CONVERGENCE",
}


@dataclass
class SolveSummary:
    """Outcome of one inner solve."""
    x: NDArray[np.float64]
    initial_cost: float
    final_cost: float
    num_evaluations: int
    num_jacobian_evaluations: int
    status: int
    message: str

    @property
    def termination_type(self) -> str:
        return _STATUS_TEXT.get(self.status, "UNKNOWN")

    @property
    def converged(self) -> bool:
        return self.status > 0

    def brief_report(self) -> str:
        return (
            f"least_squares: {self.termination_type}, "
            f"iterations: {self.num_evaluations}, "
            f"initial cost: {self.initial_cost:.6e}, "
            f"final cost: {self.final_cost:.6e} ({self.message})"
        )


class Problem:
    """Residual blocks sharing one parameter vector, with optional bounds."""

    def __init__(self, num_parameters: int) -> None:
        if num_parameters < 1:
            raise ValueError(f"Problem needs at least one parameter, got {num_parameters}")
        self.num_parameters = num_parameters
        self._blocks: list[ResidualBlock] = []
        self._lower = np.full(num_parameters, -np.inf)
        self._upper = np.full(num_parameters, np.inf)

    @property
    def num_residual_blocks(self) -> int:
        return len(self._blocks)

    @property
    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        return self._lower.copy(), self._upper.copy()

    def add_residual_block(self, block: ResidualBlock) -> None:
        self._blocks.append(block)

    def set_parameter_lower_bound(self, index: int, value: float) -> None:
        self._lower[index] = value

    def set_parameter_upper_bound(self, index: int, value: float) -> None:
        self._upper[index] = value

    def set_bounds(self, lower: float, upper: float) -> None:
        """Apply the same box ``[lower, upper]`` to every parameter."""
        if lower >= upper:
            raise ValueError(f"Empty bounds [{lower}, {upper}]")
        self._lower[:] = lower
        self._upper[:] = upper

    def evaluate(self, x: NDArray[np.float64]) -> NDArray[np.float64]:
        """Concatenated residuals of all blocks at *x*."""
        return np.concatenate([np.atleast_1d(block(x)) for block in self._blocks])

    def cost(self, x: NDArray[np.float64]) -> float:
        r = self.evaluate(x)
        return 0.5 * float(r @ r)

    def solve(self, x0: NDArray[np.float64], max_iterations: int) -> SolveSummary:
        """Minimize from *x0*, stopping after at most *max_iterations* steps.

        *x0* is clipped into the bounds first.  The result is returned
        whether or not the solver reports convergence.
        """
        if not self._blocks:
            raise ValueError("Problem has no residual blocks")
        x0 = np.asarray(x0, dtype=np.float64)
        if x0.shape != (self.num_parameters,):
            raise ValueError(f"Expected {self.num_parameters} parameters, got {x0.shape}")
        x0 = np.clip(x0, self._lower, self._upper)

        initial_cost = self.cost(x0)
        result = least_squares(
            self.evaluate, x0,
            jac="3-point",
            bounds=(self._lower, self._upper),
            method="trf",
            max_nfev=max(int(max_iterations), 1),
        )
        return SolveSummary(
            x=result.x,
            initial_cost=initial_cost,
            final_cost=float(result.cost),
            num_evaluations=int(result.nfev),
            num_jacobian_evaluations=int(result.njev) if result.njev is not None else 0,
            status=int(result.status),
            message=str(result.message),
        )

