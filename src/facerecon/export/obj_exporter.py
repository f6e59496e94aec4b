"""Write reconstruction results: the fitted mesh as OBJ, parameters as JSON.

OBJ output carries ``v`` and ``vn`` records and triangles referencing both
(``f a//a b//b c//c``), 1-based as the format requires.  The JSON file
holds the recovered pose, weights, landmark bindings and final error.
"""

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from facerecon.core.mesh import FaceMesh

logger = logging.getLogger(__name__)


def format_obj(mesh: FaceMesh) -> str:
    """Serialize *mesh* to OBJ text."""
    lines = [f"# {mesh.vertex_count} vertices, {mesh.triangle_count} triangles"]
    lines.extend(f"v {x:.6f} {y:.6f} {z:.6f}" for x, y, z in mesh.positions)
    lines.extend(f"vn {x:.6f} {y:.6f} {z:.6f}" for x, y, z in mesh.normals)
    for tri in mesh.faces + 1:
        lines.append("f " + " ".join(f"{i}//{i}" for i in tri))
    return "\n".join(lines) + "\n"


def export_obj(mesh: FaceMesh, path: str | Path) -> Path:
    """Write *mesh* to an OBJ file.

    Parameters
    ----------
    mesh : FaceMesh
        Mesh to write; positions and normals are written as they are.
    path : str or Path
        Output file path (should end with .obj).

    Returns
    -------
    Path
        The path written.
    """
    path = Path(path)
    path.write_text(format_obj(mesh))
    logger.info("Exported %d vertices to %s", mesh.vertex_count, path)
    return path


def fit_result_dict(recon) -> dict[str, Any]:
    """JSON-ready summary of a finished :class:`SingleImageReconstructor`."""
    cam = recon.camera_parameters
    return {
        "rotation": np.asarray(recon.rotation).tolist(),
        "translation": np.asarray(recon.translation).tolist(),
        "identity_weights": np.asarray(recon.identity_weights).tolist(),
        "expression_weights": np.asarray(recon.expression_weights).tolist(),
        "indices": list(recon.indices),
        "updated_indices": recon.updated_indices(),
        "image_size": list(cam.image_size) if cam is not None else None,
        "iterations": recon.iterations_run,
        "reprojection_error": recon.reprojection_error(),
    }


def export_fit_json(recon, path: str | Path) -> Path:
    """Write :func:`fit_result_dict` of *recon* to *path*."""
    path = Path(path)
    with open(path, "w") as f:
        json.dump(fit_result_dict(recon), f, indent=2)
    logger.info("Fit parameters written to %s", path)
    return path
