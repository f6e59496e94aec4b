"""Procedural face-like model for demos and tests.

Builds a small curved cap mesh (a stand-in for a face template), a core
tensor with a couple of identity and expression modes over it, matching
priors, and landmark/contour bindings shaped like a real landmark set:
the first 15 landmarks sit on the lower and side boundary of the cap, the
rest in the interior.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from facerecon.constants import NUM_CONTOUR_POINTS
from facerecon.core.mesh import FaceMesh
from facerecon.core.state import Constraint2D
from facerecon.fitting.camera import CameraParameters, project_points, view_matrix
from facerecon.model.multilinear import MultilinearModel
from facerecon.model.prior import MultilinearModelPrior, PriorComponent

NUM_LANDMARKS = 40


@dataclass
class SyntheticFace:
    """Everything a reconstruction needs, apart from the observations."""
    model: MultilinearModel
    prior: MultilinearModelPrior
    mesh: FaceMesh
    indices: list[int]
    contour_groups: list[list[int]]


def make_face_cap(
    resolution: int = 9,
    width: float = 0.6,
    height: float = 0.72,
    depth: float = 0.15,
) -> FaceMesh:
    """Create a ``resolution x resolution`` grid bulging towards +Z.

    Vertex ``(i, j)`` has index ``j * resolution + i``, with ``i`` running
    along X and ``j`` along Y.  Triangles are wound so normals face +Z.
    """
    if resolution < 3:
        raise ValueError(f"Cap resolution must be >= 3, got {resolution}")
    t = np.linspace(-1.0, 1.0, resolution)
    u, v = np.meshgrid(t, t)
    x = 0.5 * width * u
    y = 0.5 * height * v
    z = depth * np.sqrt(np.maximum(0.0, 1.0 - 0.5 * (u ** 2 + v ** 2)))
    positions = np.stack([x.ravel(), y.ravel(), z.ravel()], axis=1)

    faces = []
    for j in range(resolution - 1):
        for i in range(resolution - 1):
            a = j * resolution + i
            b = a + 1
            c = a + resolution
            d = c + 1
            faces.extend([(a, b, d), (a, d, c)])

    return FaceMesh(positions=positions, faces=np.array(faces, dtype=np.int64))


def make_core_tensor(mesh: FaceMesh) -> NDArray[np.float64]:
    """Build a ``(3, 3, 3V)`` core tensor over *mesh*.

    Entry ``[0, 0]`` is the template itself.  Identity modes 1 and 2 widen
    the face and deepen it; expression modes 1 and 2 drop the lower half
    (jaw) and puff the cheeks.  All other cross terms are zero, so with
    ``wid = [1, a, b]`` and ``wexp = [1, c, d]`` the geometry is the
    template plus a linear mix of the four offsets.
    """
    pos = mesh.positions
    lo, hi = pos.min(axis=0), pos.max(axis=0)
    extent = np.maximum(hi - lo, 1e-9)
    u = 2.0 * (pos[:, 0] - lo[0]) / extent[0] - 1.0
    v = 2.0 * (pos[:, 1] - lo[1]) / extent[1] - 1.0

    widen = np.zeros_like(pos)
    widen[:, 0] = 0.2 * pos[:, 0]
    deepen = np.zeros_like(pos)
    deepen[:, 2] = 0.5 * pos[:, 2]

    jaw = np.zeros_like(pos)
    jaw[:, 1] = -0.05 * np.maximum(-v, 0.0)
    cheeks = np.zeros_like(pos)
    cheeks[:, 2] = 0.04 * np.abs(u) * (1.0 - np.abs(v))

    n_coords = pos.size
    core = np.zeros((3, 3, n_coords), dtype=np.float64)
    core[0, 0] = pos.ravel()
    core[1, 0] = widen.ravel()
    core[2, 0] = deepen.ravel()
    core[0, 1] = jaw.ravel()
    core[0, 2] = cheeks.ravel()
    return core


def make_prior_component(
    dims: int,
    variance: float = 0.01,
    basis: Optional[NDArray[np.float64]] = None,
) -> PriorComponent:
    """Gaussian prior centred on ``[1, 0, ..., 0]`` with isotropic variance."""
    average = np.zeros(dims)
    average[0] = 1.0
    if basis is None:
        basis = np.eye(dims)
    return PriorComponent(
        average=average,
        target=average.copy(),
        covariance=np.eye(dims) * variance,
        basis=basis,
    )


def landmark_layout(resolution: int = 9) -> tuple[list[int], list[list[int]]]:
    """Landmark vertex indices and single-vertex contour groups for a cap.

    The first :data:`NUM_CONTOUR_POINTS` landmarks walk the bottom row and
    up both sides; the remaining ones fill the interior row by row.
    """
    r = resolution
    boundary = [i for i in range(r)]
    for j in range(1, r):
        boundary.append(j * r)
        boundary.append(j * r + r - 1)
    contour = boundary[:NUM_CONTOUR_POINTS]

    interior = [j * r + i for j in range(1, r - 1) for i in range(1, r - 1)]
    needed = NUM_LANDMARKS - len(contour)
    if len(contour) < NUM_CONTOUR_POINTS or len(interior) < needed:
        raise ValueError(f"Cap resolution {resolution} is too small for {NUM_LANDMARKS} landmarks")
    indices = contour + interior[:needed]
    return indices, [[i] for i in contour]


def build_synthetic_face(resolution: int = 9) -> SyntheticFace:
    mesh = make_face_cap(resolution)
    model = MultilinearModel(make_core_tensor(mesh))
    prior = MultilinearModelPrior(
        identity=make_prior_component(model.identity_dims),
        expression=make_prior_component(model.expression_dims),
    )
    indices, contour_groups = landmark_layout(resolution)
    return SyntheticFace(model=model, prior=prior, mesh=mesh,
                         indices=indices, contour_groups=contour_groups)


def render_constraints(
    face: SyntheticFace,
    rotation: NDArray[np.float64],
    translation: NDArray[np.float64],
    width: int,
    height: int,
    identity_weights: Optional[NDArray[np.float64]] = None,
    expression_weights: Optional[NDArray[np.float64]] = None,
) -> list[Constraint2D]:
    """Project the landmark vertices of a posed synthetic face to pixels.

    Weights default to the prior averages.  The face's own model is left
    untouched.
    """
    wid = face.prior.identity.average if identity_weights is None else identity_weights
    wexp = face.prior.expression.average if expression_weights is None else expression_weights
    model = face.model.copy()
    model.apply_weights(wid, wexp)

    points = model.geometry.reshape(-1, 3)[face.indices]
    camera = CameraParameters.from_image_size(width, height)
    projected = project_points(points, view_matrix(rotation, translation), camera)
    return [Constraint2D(p[:2]) for p in projected]
