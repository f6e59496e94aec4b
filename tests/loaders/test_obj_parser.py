"""Tests for the OBJ parser."""

import numpy as np
import pytest

from facerecon.loaders.obj_parser import load_obj_file, parse_obj

QUAD_OBJ = """\
# unit quad
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vt 0 0
vn 0 0 1
f 1/1/1 2/1/1 3/1/1 4/1/1
"""


def test_quad_is_fan_triangulated():
    mesh = parse_obj(QUAD_OBJ)
    assert mesh.vertex_count == 4
    np.testing.assert_array_equal(mesh.faces, [[0, 1, 2], [0, 2, 3]])
    np.testing.assert_array_almost_equal(mesh.vertex_normal(0), [0, 0, 1])


def test_negative_indices():
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n"
    mesh = parse_obj(text)
    np.testing.assert_array_equal(mesh.faces, [[0, 1, 2]])


def test_vertices_only():
    mesh = parse_obj("v 0 0 0\nv 1 2 3\n")
    assert mesh.triangle_count == 0
    np.testing.assert_array_equal(mesh.vertex(1), [1, 2, 3])


def test_no_vertices():
    with pytest.raises(ValueError, match="no vertices"):
        parse_obj("# empty\n")


def test_degenerate_face():
    with pytest.raises(ValueError, match="fewer than 3"):
        parse_obj("v 0 0 0\nv 1 0 0\nf 1 2\n")


def test_load_file(tmp_path):
    path = tmp_path / "quad.obj"
    path.write_text(QUAD_OBJ)
    assert load_obj_file(path).triangle_count == 2
