"""Multilinear core tensor reader."""

import logging
import struct
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

_HEADER_SIZE = 12


def parse_core_tensor(data: bytes) -> NDArray[np.float64]:
    """Parse binary core tensor data into an ``(n_id, n_exp, 3 * n_verts)`` array.

    Binary format (little-endian):
    - 4 bytes int32 identity dimension
    - 4 bytes int32 expression dimension
    - 4 bytes int32 vertex count
    - float32 values, C order over (identity, expression, vertex, xyz)
    """
    if len(data) < _HEADER_SIZE:
        raise ValueError("Invalid core tensor: too short")

    n_id, n_exp, n_verts = struct.unpack_from("<3i", data, 0)
    if n_id <= 0 or n_exp <= 0 or n_verts <= 0:
        raise ValueError(f"Invalid core tensor dimensions: {n_id}x{n_exp}x{n_verts}")

    count = n_id * n_exp * n_verts * 3
    expected_size = _HEADER_SIZE + count * 4
    if len(data) < expected_size:
        raise ValueError(f"Invalid core tensor: expected {expected_size} bytes, got {len(data)}")

    values = np.frombuffer(data, dtype="<f4", count=count, offset=_HEADER_SIZE)
    return values.astype(np.float64).reshape(n_id, n_exp, n_verts * 3)


def serialize_core_tensor(core: NDArray[np.float64]) -> bytes:
    """Inverse of :func:`parse_core_tensor` (values stored as float32)."""
    core = np.asarray(core)
    if core.ndim != 3 or core.shape[2] % 3:
        raise ValueError(f"Core tensor must be (n_id, n_exp, 3V), got {core.shape}")
    n_id, n_exp, n_coords = core.shape
    header = struct.pack("<3i", n_id, n_exp, n_coords // 3)
    return header + core.astype("<f4").tobytes()


def load_core_tensor(path: Path) -> NDArray[np.float64]:
    """Load a core tensor from a binary ``.bin``/``.tensor`` or a ``.npy`` file.

    A ``.npy`` array may be 3-D ``(n_id, n_exp, 3V)`` or 4-D
    ``(n_id, n_exp, V, 3)``.
    """
    path = Path(path)
    if path.suffix == ".npy":
        core = np.load(path)
        if core.ndim == 4 and core.shape[3] == 3:
            core = core.reshape(core.shape[0], core.shape[1], -1)
        if core.ndim != 3 or core.shape[2] % 3:
            raise ValueError(f"Invalid core tensor shape in {path}: {core.shape}")
        core = core.astype(np.float64)
    else:
        with open(path, "rb") as f:
            data = f.read()
        core = parse_core_tensor(data)

    logger.info("Core tensor loaded from %s: %d identity x %d expression x %d vertices",
                path, core.shape[0], core.shape[1], core.shape[2] // 3)
    return core
