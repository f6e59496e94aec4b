"""Tests for OBJ and fit JSON export."""

import json

import numpy as np

from facerecon.core.mesh import FaceMesh
from facerecon.export.obj_exporter import export_fit_json, export_obj, fit_result_dict, format_obj
from facerecon.loaders.obj_parser import load_obj_file


def _make_triangle():
    return FaceMesh(
        positions=np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float64),
        faces=np.array([[0, 1, 2]]),
    )


def test_format_obj_records():
    lines = format_obj(_make_triangle()).splitlines()
    assert lines[0].startswith("#")
    assert lines[1] == "v 0.000000 0.000000 0.000000"
    assert sum(1 for l in lines if l.startswith("vn ")) == 3
    assert lines[-1] == "f 1//1 2//2 3//3"


def test_export_obj_reads_back(tmp_path):
    mesh = _make_triangle()
    path = export_obj(mesh, tmp_path / "tri.obj")
    loaded = load_obj_file(path)
    np.testing.assert_array_almost_equal(loaded.positions, mesh.positions)
    np.testing.assert_array_equal(loaded.faces, mesh.faces)


class _FakeCamera:
    image_size = (640, 480)


class _FakeReconstructor:
    rotation = np.array([0.1, 0.0, 0.0])
    translation = np.array([0.0, 0.0, -2.0])
    identity_weights = np.array([1.0, 0.0])
    expression_weights = np.array([1.0, 0.5])
    indices = [3, 4]
    camera_parameters = _FakeCamera()
    iterations_run = 8

    def updated_indices(self):
        return [5, 4]

    def reprojection_error(self):
        return 0.25


def test_fit_result_dict():
    d = fit_result_dict(_FakeReconstructor())
    assert d["translation"] == [0.0, 0.0, -2.0]
    assert d["updated_indices"] == [5, 4]
    assert d["image_size"] == [640, 480]
    assert d["iterations"] == 8


def test_export_fit_json(tmp_path):
    path = export_fit_json(_FakeReconstructor(), tmp_path / "fit.json")
    data = json.loads(path.read_text())
    assert data["expression_weights"] == [1.0, 0.5]
    assert data["reprojection_error"] == 0.25
