"""Tests for the distance functions."""

import math

import numpy as np
import pytest

from vpscan.metrics import Metric, chebyshev, euclidean, get_metric, manhattan

DATA = np.array([0.0, 0.0, 3.0, 4.0, -1.0, 2.0])


class TestBuiltinMetrics:
    def test_euclidean(self):
        assert euclidean(0, 1, DATA, 2) == 5.0
        assert euclidean(1, 2, DATA, 2) == pytest.approx(math.hypot(4.0, 2.0))

    def test_manhattan(self):
        assert manhattan(0, 1, DATA, 2) == 7.0

    def test_chebyshev(self):
        assert chebyshev(0, 1, DATA, 2) == 4.0

    @pytest.mark.parametrize("metric", [euclidean, manhattan, chebyshev])
    def test_symmetric_and_zero_on_self(self, metric):
        for a in range(3):
            assert metric(a, a, DATA, 2) == 0.0
            for b in range(3):
                assert metric(a, b, DATA, 2) == metric(b, a, DATA, 2)

    @pytest.mark.parametrize("metric", [euclidean, manhattan, chebyshev])
    def test_many_matches_pairwise_exactly(self, metric, rng):
        data = rng.normal(size=50 * 4)
        many = metric.many(7, np.arange(50), data, 4)
        assert many.tolist() == [metric(7, j, data, 4) for j in range(50)]


class TestGetMetric:
    def test_by_name(self):
        assert get_metric("manhattan") is manhattan
        assert get_metric() is euclidean

    def test_metric_instance_passes_through(self):
        assert get_metric(chebyshev) is chebyshev

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown metric"):
            get_metric("sqeuclidean")

    def test_wraps_plain_callable(self):
        def first_coordinate(a, b, data, dim):
            return abs(data[a * dim] - data[b * dim])

        metric = get_metric(first_coordinate)
        assert isinstance(metric, Metric)
        assert metric.name == "first_coordinate"
        assert metric(0, 1, DATA, 2) == 3.0
        assert metric.many(0, [1, 2], DATA, 2).tolist() == [3.0, 1.0]

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            get_metric(3)
