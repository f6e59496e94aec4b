"""Plain-text readers for landmark points, vertex indices and contour groups.

All three formats are whitespace separated with one record per line.
Blank lines and lines starting with ``#`` are skipped.
"""

from pathlib import Path

import numpy as np
from numpy.typing import NDArray


def _data_lines(text: str) -> list[list[str]]:
    rows = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        rows.append(line.split())
    return rows


def parse_landmarks(text: str) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Parse 2D landmarks, ``x y [weight]`` per line.

    Returns an ``(N, 2)`` position array and an ``(N,)`` weight array.  The
    optional third column (e.g. a detector confidence) becomes the
    landmark weight and defaults to 1.0.
    """
    points = []
    weights = []
    for parts in _data_lines(text):
        if len(parts) < 2:
            raise ValueError(f"Landmark line needs x and y: {' '.join(parts)!r}")
        if len(parts) > 3:
            raise ValueError(f"Landmark line has more than x, y and weight: {' '.join(parts)!r}")
        points.append((float(parts[0]), float(parts[1])))
        weight = float(parts[2]) if len(parts) == 3 else 1.0
        if weight < 0.0:
            raise ValueError(f"Landmark weight must be non-negative, got {weight}")
        weights.append(weight)
    return (np.array(points, dtype=np.float64).reshape(-1, 2),
            np.array(weights, dtype=np.float64))


def parse_indices(text: str) -> list[int]:
    """Parse a vertex-index list.

    Indices may be given one per line or several per line; the order of
    appearance is preserved.
    """
    indices = []
    for parts in _data_lines(text):
        indices.extend(int(p) for p in parts)
    return indices


def parse_contour_groups(text: str) -> list[list[int]]:
    """Parse contour candidate groups, one ordered group per line.

    Vertex order within a line defines the neighbour relation used when
    proposing silhouette candidates.
    """
    return [[int(p) for p in parts] for parts in _data_lines(text)]


def load_landmarks_file(path: Path) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    with open(path, "r") as f:
        return parse_landmarks(f.read())


def load_indices_file(path: Path) -> list[int]:
    with open(path, "r") as f:
        return parse_indices(f.read())


def load_contour_groups_file(path: Path) -> list[list[int]]:
    with open(path, "r") as f:
        return parse_contour_groups(f.read())
