"""Statistical priors over identity and expression weights."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from facerecon.constants import EXPRESSION_PRIOR_WEIGHT, IDENTITY_PRIOR_WEIGHT
from facerecon.loaders.prior_loader import PriorData, load_prior_file

logger = logging.getLogger(__name__)


@dataclass
class PriorComponent:
    """Gaussian prior for one weight space.

    ``inv_covariance`` is derived from ``covariance`` on construction; a
    singular covariance is rejected.
    """
    average: NDArray[np.float64]
    target: NDArray[np.float64]
    covariance: NDArray[np.float64]
    basis: NDArray[np.float64]
    inv_covariance: NDArray[np.float64] = field(init=False, repr=False)

    def __post_init__(self):
        self.average = np.asarray(self.average, dtype=np.float64).ravel()
        self.target = np.asarray(self.target, dtype=np.float64).ravel()
        dims = len(self.average)
        self.covariance = np.asarray(self.covariance, dtype=np.float64).reshape(dims, dims)
        self.basis = np.asarray(self.basis, dtype=np.float64)
        if self.basis.ndim != 2:
            raise ValueError(f"Prior basis must be a matrix, got shape {self.basis.shape}")
        if len(self.target) != dims:
            raise ValueError(f"Prior target has {len(self.target)} entries, expected {dims}")
        try:
            self.inv_covariance = np.linalg.inv(self.covariance)
        except np.linalg.LinAlgError as e:
            raise ValueError(f"Prior covariance is not invertible: {e}") from e

    @property
    def dims(self) -> int:
        return len(self.average)

    @classmethod
    def from_data(cls, data: PriorData) -> "PriorComponent":
        return cls(data.average, data.target, data.covariance, data.basis)

    @classmethod
    def from_file(cls, path: Path) -> "PriorComponent":
        return cls.from_data(load_prior_file(path))


@dataclass
class MultilinearModelPrior:
    """Identity and expression priors plus their annealed trust weights."""
    identity: PriorComponent
    expression: PriorComponent
    weight_identity: float = IDENTITY_PRIOR_WEIGHT
    weight_expression: float = EXPRESSION_PRIOR_WEIGHT

    @classmethod
    def load(cls, identity_path: Path, expression_path: Path) -> "MultilinearModelPrior":
        logger.info("Loading prior data ...")
        identity = PriorComponent.from_file(identity_path)
        logger.info("Identity prior loaded: dim = %d, Uid size: %dx%d",
                    identity.dims, *identity.basis.shape)
        expression = PriorComponent.from_file(expression_path)
        logger.info("Expression prior loaded: dim = %d, Uexp size: %dx%d",
                    expression.dims, *expression.basis.shape)
        return cls(identity=identity, expression=expression)

    @property
    def expression_basis(self) -> NDArray[np.float64]:
        """Matrix mapping reduced (FACS-like) expression weights to native ones."""
        return self.expression.basis

    def reset_weights(self, identity: float, expression: float) -> None:
        self.weight_identity = identity
        self.weight_expression = expression

    def anneal(self, identity_step: float, expression_step: float) -> None:
        """Decay both trust weights by one step, never below zero."""
        self.weight_identity = max(self.weight_identity - identity_step, 0.0)
        self.weight_expression = max(self.weight_expression - expression_step, 0.0)
