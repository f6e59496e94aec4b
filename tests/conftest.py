"""Shared fixtures: a small synthetic face model and its observations."""

import numpy as np
import pytest

from facerecon.model.synthetic import build_synthetic_face, render_constraints


@pytest.fixture(scope="session")
def image_size():
    return (640, 480)


@pytest.fixture(scope="session")
def true_pose():
    """(rotation, translation) the observations are rendered from."""
    return np.array([0.06, -0.04, 0.03]), np.array([0.02, -0.01, -2.0])


@pytest.fixture
def synthetic_face():
    return build_synthetic_face()


@pytest.fixture
def observed_constraints(synthetic_face, true_pose, image_size):
    rotation, translation = true_pose
    return render_constraints(synthetic_face, rotation, translation, *image_size)
