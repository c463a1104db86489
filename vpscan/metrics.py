import numpy as np


def _rows(data, dim, ids):
    ids = np.asarray(ids, dtype=np.int64)
    points = np.asarray(data).reshape(-1, dim)
    return points[ids]


def euclidean_many(a, ids, data, dim):
    """
    Compute the Euclidean distance between point a and every point in ids.

    Args:
        a: Point id of the reference point.
        ids: Sequence of point ids.
        data: Flat array holding the points, dim values per point.
        dim: Dimension of each point.

    Returns:
        Array of shape (len(ids),) with the distances.
    """
    p = np.asarray(data)[a * dim:(a + 1) * dim]
    return np.sqrt(np.sum((_rows(data, dim, ids) - p) ** 2, axis=1))


def manhattan_many(a, ids, data, dim):
    """L1 distance between point a and every point in ids."""
    p = np.asarray(data)[a * dim:(a + 1) * dim]
    return np.sum(np.abs(_rows(data, dim, ids) - p), axis=1)


def chebyshev_many(a, ids, data, dim):
    """L-infinity distance between point a and every point in ids."""
    p = np.asarray(data)[a * dim:(a + 1) * dim]
    diff = np.abs(_rows(data, dim, ids) - p)
    if diff.shape[1] == 0:
        return np.zeros(diff.shape[0])
    return np.max(diff, axis=1)


class Metric:
    """
    Distance function over two point ids of a shared flat buffer.

    Calling the metric as metric(a, b, data, dim) returns one distance. many()
    returns the distances from one point to a set of points. When a vectorized
    function is given, the pairwise form goes through it as well so both forms
    return the same floats.
    """

    def __init__(self, name, pairwise=None, many=None):
        if pairwise is None and many is None:
            raise ValueError("A metric needs a pairwise or a vectorized distance function.")
        self.name = name
        self._pairwise = pairwise
        self._many = many

    def __call__(self, a, b, data, dim):
        if self._many is not None:
            return float(self._many(a, [b], data, dim)[0])
        return float(self._pairwise(a, b, data, dim))

    def many(self, a, ids, data, dim):
        if self._many is not None:
            return np.asarray(self._many(a, ids, data, dim), dtype=np.float64)
        return np.array([self._pairwise(a, int(b), data, dim) for b in ids], dtype=np.float64)

    def __repr__(self):
        return f"Metric({self.name!r})"


euclidean = Metric("euclidean", many=euclidean_many)
manhattan = Metric("manhattan", many=manhattan_many)
chebyshev = Metric("chebyshev", many=chebyshev_many)

METRICS = {m.name: m for m in (euclidean, manhattan, chebyshev)}


def get_metric(metric="euclidean"):
    """
    Resolve a metric given by name, Metric instance or plain callable.

    A plain callable must follow the signature distance(a, b, data, dim) and
    satisfy the triangle inequality, since the tree prunes with it.

    Args:
        metric: "euclidean", "manhattan", "chebyshev", a Metric or a callable.

    Returns:
        Metric instance.
    """
    if isinstance(metric, Metric):
        return metric
    if isinstance(metric, str):
        try:
            return METRICS[metric]
        except KeyError:
            raise ValueError(
                f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}"
            ) from None
    if callable(metric):
        return Metric(getattr(metric, "__name__", "custom"), pairwise=metric)
    raise TypeError(f"metric must be a name or a callable, got {type(metric).__name__}")
