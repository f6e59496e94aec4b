"""Triangle mesh storage for the face template (topology + current geometry)."""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray


@dataclass
class FaceMesh:
    """Vertex positions, per-vertex normals and triangle topology.

    positions: (V, 3) float64
    faces: (F, 3) triangle vertex indices
    normals: (V, 3) float64, unit length (zero for isolated vertices)

    The topology is fixed; :meth:`update_vertices` only replaces positions,
    so normals must be refreshed with :meth:`compute_normals` afterwards.
    """
    positions: NDArray[np.float64]
    faces: NDArray[np.int64]
    normals: NDArray[np.float64] = field(default=None)

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= len(self.positions)):
            raise ValueError(
                f"Face indices out of range for {len(self.positions)} vertices"
            )
        if self.normals is None:
            self.compute_normals()
        else:
            self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.faces)

    def vertex(self, index: int) -> NDArray[np.float64]:
        return self.positions[index]

    def vertex_normal(self, index: int) -> NDArray[np.float64]:
        return self.normals[index]

    def update_vertices(self, geometry: NDArray[np.float64]) -> None:
        """Replace all vertex positions from a flat ``(3V,)`` geometry vector."""
        geometry = np.asarray(geometry, dtype=np.float64)
        if geometry.size != self.positions.size:
            raise ValueError(
                f"Geometry has {geometry.size} values, mesh expects {self.positions.size}"
            )
        self.positions = geometry.reshape(-1, 3).copy()

    def compute_normals(self) -> None:
        """Compute area-weighted per-vertex normals from the triangles."""
        pos = self.positions
        norms = np.zeros_like(pos)

        if self.triangle_count:
            v0 = pos[self.faces[:, 0]]
            v1 = pos[self.faces[:, 1]]
            v2 = pos[self.faces[:, 2]]
            face_normals = np.cross(v1 - v0, v2 - v0)
            for k in range(3):
                np.add.at(norms, self.faces[:, k], face_normals)

        lengths = np.linalg.norm(norms, axis=1, keepdims=True)
        lengths = np.maximum(lengths, 1e-10)
        self.normals = norms / lengths

    def clone(self) -> "FaceMesh":
        """Create a deep copy."""
        return FaceMesh(
            positions=self.positions.copy(),
            faces=self.faces.copy(),
            normals=self.normals.copy(),
        )
