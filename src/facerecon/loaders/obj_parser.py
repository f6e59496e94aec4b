"""Wavefront OBJ parser → FaceMesh."""

from pathlib import Path

import numpy as np

from facerecon.core.mesh import FaceMesh


def parse_obj(text: str) -> FaceMesh:
    """Parse a Wavefront OBJ string into a :class:`FaceMesh`.

    Only ``v`` and ``f`` lines are used; texture and normal references in
    face tokens are ignored and normals are recomputed from the triangles.
    Quads and n-gons are fan-triangulated.

    Parameters
    ----------
    text : str
        The OBJ file contents.

    Returns
    -------
    FaceMesh
    """
    positions: list[list[float]] = []
    triangles: list[list[int]] = []

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        key = parts[0]

        if key == "v" and len(parts) >= 4:
            positions.append([float(parts[1]), float(parts[2]), float(parts[3])])
        elif key == "f":
            vi = []
            for token in parts[1:]:
                idx = int(token.split("/")[0])
                # OBJ is 1-based; negative indices count back from the end
                vi.append(idx - 1 if idx > 0 else len(positions) + idx)
            if len(vi) < 3:
                raise ValueError(f"Face with fewer than 3 vertices: {line!r}")
            for k in range(1, len(vi) - 1):
                triangles.append([vi[0], vi[k], vi[k + 1]])

    if not positions:
        raise ValueError("OBJ contains no vertices")

    return FaceMesh(
        positions=np.array(positions, dtype=np.float64),
        faces=np.array(triangles, dtype=np.int64).reshape(-1, 3),
    )


def load_obj_file(path: Path) -> FaceMesh:
    """Load an OBJ file from disk.

    Parameters
    ----------
    path : str or Path
        Path to the ``.obj`` file.

    Returns
    -------
    FaceMesh
    """
    with open(path, "r") as f:
        text = f.read()
    return parse_obj(text)
