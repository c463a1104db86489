"""Cross-check the VP-tree searches against scipy's cKDTree."""

import numpy as np
import pytest

cKDTree = pytest.importorskip("scipy.spatial").cKDTree

from vpscan.buffer import PointBuffer  # noqa: E402
from vpscan.vp_tree import VPTree  # noqa: E402

MINKOWSKI_P = {"euclidean": 2, "manhattan": 1, "chebyshev": np.inf}


@pytest.fixture
def cloud(rng):
    return rng.normal(scale=3.0, size=(500, 3))


@pytest.mark.parametrize("metric", sorted(MINKOWSKI_P))
@pytest.mark.parametrize("radius", [0.3, 1.0, 2.5])
def test_radius_search(cloud, metric, radius):
    tree = VPTree(PointBuffer.from_points(cloud), metric=metric)
    reference = cKDTree(cloud)
    p = MINKOWSKI_P[metric]

    for query in range(0, len(cloud), 25):
        expected = sorted(reference.query_ball_point(cloud[query], radius, p=p))
        assert tree.search_radius(query, radius, strategy="stack") == expected
        assert tree.search_radius(query, radius, strategy="parent") == expected


@pytest.mark.parametrize("metric", sorted(MINKOWSKI_P))
@pytest.mark.parametrize("k", [1, 4, 16])
def test_k_nearest(cloud, metric, k):
    tree = VPTree(PointBuffer.from_points(cloud), metric=metric)
    reference = cKDTree(cloud)
    p = MINKOWSKI_P[metric]

    for query in range(0, len(cloud), 25):
        expected_dists, _ = reference.query(cloud[query], k=k, p=p)
        expected_dists = np.atleast_1d(expected_dists)
        for strategy in ("stack", "parent"):
            ids = tree.knn(query, k, strategy=strategy)
            dists = [tree.distance(query, i) for i in ids]
            np.testing.assert_allclose(dists, expected_dists, rtol=1e-12, atol=1e-12)
