"""Tests for the core tensor reader."""

import struct

import numpy as np
import pytest

from facerecon.loaders.tensor_loader import (
    load_core_tensor, parse_core_tensor, serialize_core_tensor,
)


def _make_tensor_bytes(n_id=2, n_exp=3, n_verts=4):
    """Create tensor bytes whose value at (i, e, v, c) is i*1000 + e*100 + v*10 + c."""
    header = struct.pack("<3i", n_id, n_exp, n_verts)
    values = [
        i * 1000 + e * 100 + v * 10 + c
        for i in range(n_id) for e in range(n_exp)
        for v in range(n_verts) for c in range(3)
    ]
    return header + struct.pack(f"<{len(values)}f", *values)


def test_parse_shape_and_layout():
    core = parse_core_tensor(_make_tensor_bytes())
    assert core.shape == (2, 3, 12)
    assert core.dtype == np.float64
    # identity 1, expression 2, vertex 3, coordinate z
    assert core[1, 2, 3 * 3 + 2] == 1000 + 200 + 30 + 2


def test_too_short():
    with pytest.raises(ValueError, match="too short"):
        parse_core_tensor(b"\x01\x00")


def test_truncated_data():
    data = _make_tensor_bytes()
    with pytest.raises(ValueError, match="expected"):
        parse_core_tensor(data[:-4])


def test_bad_dimensions():
    with pytest.raises(ValueError, match="dimensions"):
        parse_core_tensor(struct.pack("<3i", 2, 0, 4))


def test_serialize_matches_format():
    data = _make_tensor_bytes()
    assert serialize_core_tensor(parse_core_tensor(data)) == data


def test_serialize_rejects_bad_shape():
    with pytest.raises(ValueError):
        serialize_core_tensor(np.zeros((2, 2, 4)))


def test_load_binary_file(tmp_path):
    path = tmp_path / "core.bin"
    path.write_bytes(_make_tensor_bytes(1, 1, 2))
    core = load_core_tensor(path)
    np.testing.assert_array_equal(core[0, 0], [0, 1, 2, 10, 11, 12])


def test_load_npy_four_dimensional(tmp_path):
    arr = np.arange(2 * 2 * 5 * 3, dtype=np.float32).reshape(2, 2, 5, 3)
    path = tmp_path / "core.npy"
    np.save(path, arr)
    core = load_core_tensor(path)
    assert core.shape == (2, 2, 15)
    np.testing.assert_array_equal(core[1, 0], arr[1, 0].ravel())


def test_load_npy_bad_shape(tmp_path):
    path = tmp_path / "core.npy"
    np.save(path, np.zeros((2, 2, 7)))
    with pytest.raises(ValueError, match="shape"):
        load_core_tensor(path)
