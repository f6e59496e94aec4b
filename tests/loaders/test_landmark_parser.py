"""Tests for landmark, index and contour file parsing."""

import numpy as np
import pytest

from facerecon.loaders.landmark_parser import (
    load_contour_groups_file, load_indices_file, load_landmarks_file,
    parse_contour_groups, parse_indices, parse_landmarks,
)


def test_parse_landmarks_ignores_comments():
    pts, weights = parse_landmarks("# x y\n10.5 20\n\n30 40.25\n")
    np.testing.assert_array_equal(pts, [[10.5, 20.0], [30.0, 40.25]])
    np.testing.assert_array_equal(weights, [1.0, 1.0])


def test_parse_landmarks_weight_column():
    pts, weights = parse_landmarks("# x y conf\n10 20 0.9\n30 40\n")
    np.testing.assert_array_equal(pts, [[10.0, 20.0], [30.0, 40.0]])
    np.testing.assert_array_equal(weights, [0.9, 1.0])


def test_parse_landmarks_empty():
    pts, weights = parse_landmarks("")
    assert pts.shape == (0, 2)
    assert weights.shape == (0,)


def test_parse_landmarks_missing_column():
    with pytest.raises(ValueError, match="x and y"):
        parse_landmarks("12\n")


def test_parse_landmarks_too_many_columns():
    with pytest.raises(ValueError, match="more than x, y and weight"):
        parse_landmarks("1 2 0.5 3\n")


def test_parse_landmarks_negative_weight():
    with pytest.raises(ValueError, match="non-negative"):
        parse_landmarks("1 2 -0.5\n")


def test_parse_indices_mixed_layout():
    assert parse_indices("5\n6 7\n# skip\n8\n") == [5, 6, 7, 8]


def test_parse_contour_groups():
    groups = parse_contour_groups("1 2 3\n\n4\n5 6\n")
    assert groups == [[1, 2, 3], [4], [5, 6]]


def test_load_files(tmp_path):
    (tmp_path / "pts.txt").write_text("1 2\n3 4 0.5\n")
    (tmp_path / "idx.txt").write_text("9\n8\n")
    (tmp_path / "contour.txt").write_text("1 2\n3 4 5\n")
    pts, weights = load_landmarks_file(tmp_path / "pts.txt")
    assert pts.shape == (2, 2)
    np.testing.assert_array_equal(weights, [1.0, 0.5])
    assert load_indices_file(tmp_path / "idx.txt") == [9, 8]
    assert load_contour_groups_file(tmp_path / "contour.txt") == [[1, 2], [3, 4, 5]]
