class VPScanError(Exception):
    """Base class for every error raised by vpscan."""


class OutOfBoundsError(VPScanError, IndexError):
    """A point id lies outside [0, n_points)."""


class InconsistentDimensionError(VPScanError, ValueError):
    """The data length is not a multiple of the point dimension."""


class PointNotFoundError(VPScanError, LookupError):
    """An exact-point lookup did not reach a leaf holding the point."""


class TreeInvariantViolation(VPScanError, RuntimeError):
    """The tree structure is broken. This is a bug in the builder, not bad input."""


class TreeNotBuiltError(VPScanError, RuntimeError):
    """A query or graph build was attempted on a tree that was never fitted."""


class StaleIndexError(VPScanError, RuntimeError):
    """An index or graph no longer matches the data it is used with."""
