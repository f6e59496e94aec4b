"""Bilinear (identity x expression) face model built on a core tensor.

The core tensor has shape ``(n_identity, n_expression, 3 * n_vertices)``.
Contracting it with an identity weight vector and an expression weight
vector gives the flat vertex vector ``TM``::

    TM = core ×₁ w_id ×₂ w_exp

The model caches both partial contractions so that when only one of the
two weight vectors changes, the new geometry is a single matrix-vector
product:

* ``tm_identity``   = core ×₂ w_exp, shape ``(n_identity, 3V)``
* ``tm_expression`` = core ×₁ w_id,  shape ``(n_expression, 3V)``
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from facerecon.loaders.tensor_loader import load_core_tensor


class MultilinearModel:
    """Core tensor plus the weights currently applied to it."""

    def __init__(self, core: NDArray[np.float64]) -> None:
        self._set_core(core)

    def _set_core(self, core: NDArray[np.float64]) -> None:
        core = np.asarray(core, dtype=np.float64)
        if core.ndim != 3 or core.shape[2] % 3:
            raise ValueError(f"Core tensor must be (n_id, n_exp, 3V), got {core.shape}")
        self._core = core
        self._wid: Optional[NDArray[np.float64]] = None
        self._wexp: Optional[NDArray[np.float64]] = None
        self._tm_identity: Optional[NDArray[np.float64]] = None
        self._tm_expression: Optional[NDArray[np.float64]] = None
        self._tm: NDArray[np.float64] = np.zeros(core.shape[2], dtype=np.float64)

    @classmethod
    def from_file(cls, path: Path) -> "MultilinearModel":
        return cls(load_core_tensor(path))

    def load(self, path: Path) -> None:
        """Replace the core tensor with one read from *path*; weights are cleared."""
        self._set_core(load_core_tensor(path))

    # ── Dimensions ────────────────────────────────────────────────────

    @property
    def identity_dims(self) -> int:
        return self._core.shape[0]

    @property
    def expression_dims(self) -> int:
        return self._core.shape[1]

    @property
    def num_vertices(self) -> int:
        return self._core.shape[2] // 3

    @property
    def core(self) -> NDArray[np.float64]:
        return self._core

    # ── Current state ─────────────────────────────────────────────────

    @property
    def geometry(self) -> NDArray[np.float64]:
        """Flat ``(3V,)`` vertex vector for the applied weights."""
        return self._tm

    @property
    def identity_weights(self) -> Optional[NDArray[np.float64]]:
        return self._wid

    @property
    def expression_weights(self) -> Optional[NDArray[np.float64]]:
        return self._wexp

    @property
    def tm_identity(self) -> NDArray[np.float64]:
        if self._tm_identity is None:
            self._require(self._wexp, "expression")
            self._tm_identity = np.tensordot(self._core, self._wexp, axes=([1], [0]))
        return self._tm_identity

    @property
    def tm_expression(self) -> NDArray[np.float64]:
        if self._tm_expression is None:
            self._require(self._wid, "identity")
            self._tm_expression = np.tensordot(self._core, self._wid, axes=([0], [0]))
        return self._tm_expression

    # ── Weight application ────────────────────────────────────────────

    def apply_weights(self, wid: NDArray[np.float64], wexp: NDArray[np.float64]) -> None:
        """Full recontraction with both weight vectors."""
        self._wid = self._check(wid, self.identity_dims, "identity")
        self._wexp = self._check(wexp, self.expression_dims, "expression")
        self._tm_identity = None
        self._tm_expression = None
        self._tm = self._wid @ self.tm_identity

    def apply_identity_weights(self, wid: NDArray[np.float64]) -> None:
        """Incremental update when only the identity weights change."""
        self._wid = self._check(wid, self.identity_dims, "identity")
        self._tm_expression = None
        self._tm = self._wid @ self.tm_identity

    def apply_expression_weights(self, wexp: NDArray[np.float64]) -> None:
        """Incremental update when only the expression weights change."""
        self._wexp = self._check(wexp, self.expression_dims, "expression")
        self._tm_identity = None
        self._tm = self._wexp @ self.tm_expression

    def evaluate_identity(self, wid: NDArray[np.float64]) -> NDArray[np.float64]:
        """Geometry for *wid* with the current expression; state is not modified."""
        return np.asarray(wid, dtype=np.float64) @ self.tm_identity

    def evaluate_expression(self, wexp: NDArray[np.float64]) -> NDArray[np.float64]:
        """Geometry for *wexp* with the current identity; state is not modified."""
        return np.asarray(wexp, dtype=np.float64) @ self.tm_expression

    # ── Sub-models ────────────────────────────────────────────────────

    def project(self, vertex_indices: Sequence[int]) -> "MultilinearModel":
        """Independent model restricted to *vertex_indices* (in the given order).

        The current weights are carried over and both partial contractions
        are computed up front, so the evaluate_* methods of the result never
        touch its cached state.
        """
        idx = np.asarray(vertex_indices, dtype=np.intp).ravel()
        if idx.size and (idx.min() < 0 or idx.max() >= self.num_vertices):
            raise ValueError(
                f"Vertex index out of range for a {self.num_vertices}-vertex model"
            )
        cols = (idx[:, None] * 3 + np.arange(3)).ravel()
        sub = MultilinearModel(self._core[:, :, cols])
        if self._wid is not None and self._wexp is not None:
            sub.apply_weights(self._wid, self._wexp)
            _ = sub.tm_expression
        return sub

    def copy(self) -> "MultilinearModel":
        """Copy sharing the (read-only) core tensor but not the weight state."""
        other = MultilinearModel(self._core)
        if self._wid is not None and self._wexp is not None:
            other.apply_weights(self._wid, self._wexp)
        return other

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _check(w: NDArray[np.float64], expected: int, kind: str) -> NDArray[np.float64]:
        w = np.array(w, dtype=np.float64).ravel()
        if w.shape[0] != expected:
            raise ValueError(f"{kind} weights have {w.shape[0]} entries, model expects {expected}")
        return w

    @staticmethod
    def _require(w: Optional[NDArray[np.float64]], kind: str) -> None:
        if w is None:
            raise RuntimeError(f"No {kind} weights applied to the model yet")
