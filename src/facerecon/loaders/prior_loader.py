"""Binary statistical prior file reader."""

import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from numpy.typing import NDArray


@dataclass
class PriorData:
    """Raw arrays read from one prior file."""
    average: NDArray[np.float64]
    target: NDArray[np.float64]
    covariance: NDArray[np.float64]
    basis: NDArray[np.float64]


def parse_prior(data: bytes) -> PriorData:
    """Parse a prior file.

    Binary format (little-endian):
    - int32 dims
    - float64[dims] average vector
    - float64[dims] prior target vector
    - float64[dims * dims] covariance matrix, row-major
    - int32 basis rows, int32 basis cols
    - float64[rows * cols] basis matrix, row-major
    """
    offset = 0

    def _read_int() -> int:
        nonlocal offset
        if len(data) < offset + 4:
            raise ValueError(f"Invalid prior: truncated at byte {offset}")
        value = struct.unpack_from("<i", data, offset)[0]
        offset += 4
        return value

    def _read_doubles(count: int) -> NDArray[np.float64]:
        nonlocal offset
        size = count * 8
        if len(data) < offset + size:
            raise ValueError(
                f"Invalid prior: expected {offset + size} bytes, got {len(data)}"
            )
        values = np.frombuffer(data, dtype="<f8", count=count, offset=offset)
        offset += size
        return values.astype(np.float64)

    dims = _read_int()
    if dims <= 0:
        raise ValueError(f"Invalid prior: dimension {dims}")
    average = _read_doubles(dims)
    target = _read_doubles(dims)
    covariance = _read_doubles(dims * dims).reshape(dims, dims)

    rows = _read_int()
    cols = _read_int()
    if rows < 0 or cols < 0:
        raise ValueError(f"Invalid prior: basis size {rows}x{cols}")
    basis = _read_doubles(rows * cols).reshape(rows, cols)

    return PriorData(average=average, target=target, covariance=covariance, basis=basis)


def serialize_prior(prior: PriorData) -> bytes:
    """Inverse of :func:`parse_prior`."""
    dims = len(prior.average)
    rows, cols = prior.basis.shape
    return b"".join([
        struct.pack("<i", dims),
        np.asarray(prior.average, dtype="<f8").tobytes(),
        np.asarray(prior.target, dtype="<f8").tobytes(),
        np.asarray(prior.covariance, dtype="<f8").tobytes(),
        struct.pack("<2i", rows, cols),
        np.asarray(prior.basis, dtype="<f8").tobytes(),
    ])


def load_prior_file(path: Path) -> PriorData:
    """Load a prior file from disk."""
    with open(path, "rb") as f:
        data = f.read()
    return parse_prior(data)
