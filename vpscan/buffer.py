import numpy as np

from vpscan.errors import InconsistentDimensionError, OutOfBoundsError


class PointBuffer:
    """
    Immutable flat buffer of N points of dimension D.

    Point i occupies data[i * dim:(i + 1) * dim]. The array is copied once on
    construction and marked read-only, so trees, graphs and clusterers can share
    the same buffer object without copying it.
    """

    def __init__(self, data, dim):
        dim = int(dim)
        if dim < 1:
            raise InconsistentDimensionError(f"Dimension must be positive, got {dim}.")

        flat = np.array(data, dtype=np.float64).ravel()
        if flat.size % dim:
            raise InconsistentDimensionError(
                f"Data size {flat.size} is not a multiple of the dimension {dim}."
            )
        if not np.all(np.isfinite(flat)):
            raise ValueError("Point coordinates must be finite.")

        flat.setflags(write=False)
        self._data = flat
        self._dim = dim

    @classmethod
    def from_points(cls, points):
        """Build a buffer from an array of shape (N, D)."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(-1, 1)
        if points.ndim != 2:
            raise InconsistentDimensionError(
                f"Expected an array of shape (N, D), got shape {points.shape}."
            )
        if points.shape[1] == 0:
            raise InconsistentDimensionError("Points must have at least one coordinate.")
        return cls(points.reshape(-1), points.shape[1])

    @property
    def data(self):
        return self._data

    @property
    def dim(self):
        return self._dim

    @property
    def n_points(self):
        return self._data.size // self._dim

    def __len__(self):
        return self.n_points

    def point(self, i):
        self.check_index(i)
        return self._data[i * self._dim:(i + 1) * self._dim]

    def as_points(self):
        """Read-only (N, D) view of the buffer."""
        return self._data.reshape(-1, self._dim)

    def check_index(self, i):
        if not 0 <= i < self.n_points:
            raise OutOfBoundsError(
                f"Point id {i} is out of bounds for {self.n_points} points."
            )

    def __repr__(self):
        return f"PointBuffer(n_points={self.n_points}, dim={self._dim})"
