"""Pytest configuration and shared fixtures."""

import logging

import numpy as np
import pytest

from vpscan.buffer import PointBuffer
from vpscan.vp_tree import VPTree


@pytest.fixture
def rng():
    """Seeded generator so every run sees the same random point sets."""
    return np.random.default_rng(1234)


@pytest.fixture
def two_groups():
    """1-D points {0, 1, 2, 10, 11}: two groups farther apart than 1.5."""
    return PointBuffer([0.0, 1.0, 2.0, 10.0, 11.0], 1)


@pytest.fixture
def random_points(rng):
    return rng.uniform(-10.0, 10.0, size=(200, 3))


@pytest.fixture
def random_buffer(random_points):
    return PointBuffer.from_points(random_points)


@pytest.fixture
def random_tree(random_buffer):
    return VPTree(random_buffer)


@pytest.fixture
def blobs(rng):
    """Three well separated 2-D gaussian blobs of 40 points plus a far outlier."""
    centers = np.array([[0.0, 0.0], [20.0, 0.0], [0.0, 20.0]])
    points = np.vstack([c + rng.normal(scale=0.5, size=(40, 2)) for c in centers])
    return np.vstack([points, [[100.0, 100.0]]])


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() so later tests keep pytest's own log capture."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
