"""Silhouette (contour) landmark correspondence search.

Contour landmarks on a face image lie on the occluding boundary, and which
mesh vertices sit on that boundary depends on pose and shape.  Each contour
group is an ordered strip of candidate vertices running across the cheek
or jaw; the vertex whose normal is closest to perpendicular to the viewing
axis is taken as the silhouette point of the strip.  Contour landmarks are
then rebound to the nearest projected silhouette candidate.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from facerecon.core.mesh import FaceMesh
from facerecon.core.state import Constraint2D
from facerecon.fitting.camera import (
    CameraParameters, project_points, rotation_matrix, view_matrix,
)

logger = logging.getLogger(__name__)

_VIEW_AXIS = np.array([0.0, 0.0, 1.0])


def find_silhouette_candidates(
    mesh: FaceMesh,
    contour_groups: Sequence[Sequence[int]],
    rotation: np.ndarray,
) -> list[int]:
    """Silhouette vertex of every group plus its neighbours in the group.

    For each group the vertex minimizing ``|dot(R n, z)|`` is proposed
    first, followed by its previous and next entries when they exist.
    """
    rot = rotation_matrix(rotation)[:3, :3]
    candidates: list[int] = []
    for group in contour_groups:
        if len(group) == 0:
            continue
        normals = mesh.normals[np.asarray(group, dtype=np.intp)] @ rot.T
        dots = np.abs(normals @ _VIEW_AXIS)
        k = int(np.argmin(dots))
        candidates.append(group[k])
        if k > 0:
            candidates.append(group[k - 1])
        if k < len(group) - 1:
            candidates.append(group[k + 1])
    return candidates


def update_contour_correspondences(
    mesh: FaceMesh,
    contour_groups: Sequence[Sequence[int]],
    constraints: list[Constraint2D],
    rotation: np.ndarray,
    translation: np.ndarray,
    camera: CameraParameters,
    num_contour_points: int,
    max_distance: float,
) -> list[int]:
    """Rebind the first *num_contour_points* constraints to silhouette vertices.

    A constraint keeps its current vertex when the nearest projected
    candidate is farther than *max_distance* pixels.  Constraints are
    modified in place.

    Returns
    -------
    list[int]
        Positions (in *constraints*) whose vertex binding changed.
    """
    candidates = find_silhouette_candidates(mesh, contour_groups, rotation)
    if not candidates:
        logger.warning("No contour candidates; contour bindings left unchanged")
        return []

    model_view = view_matrix(rotation, translation)
    projected = project_points(mesh.positions[candidates], model_view, camera)[:, :2]

    changed = []
    for i, constraint in enumerate(constraints[:num_contour_points]):
        d2 = np.sum((projected - constraint.data) ** 2, axis=1)
        j = int(np.argmin(d2))
        if np.sqrt(d2[j]) > max_distance:
            logger.debug("Contour point %d: nearest candidate %.1f px away, kept vertex %d",
                         i, np.sqrt(d2[j]), constraint.vertex_index)
            continue
        if candidates[j] != constraint.vertex_index:
            logger.debug("Contour point %d: vertex %d -> %d",
                         i, constraint.vertex_index, candidates[j])
            constraint.vertex_index = candidates[j]
            changed.append(i)
    return changed
