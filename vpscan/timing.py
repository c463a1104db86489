import logging
import time
from contextlib import contextmanager


class Timer:
    """Elapsed wall time of a timed block, filled in when the block exits."""

    def __init__(self, label):
        self.label = label
        self.elapsed_ms = 0.0


@contextmanager
def timed(label, logger=None, level=logging.DEBUG):
    """
    Measure the wall time of a block with time.perf_counter and log it.

    Args:
        label: Name of the measured step, used in the log line.
        logger: Logger to report to. Defaults to this module's logger.
        level: Log level of the report.

    Yields:
        Timer whose elapsed_ms is set once the block finishes.
    """
    timer = Timer(label)
    start = time.perf_counter()
    try:
        yield timer
    finally:
        timer.elapsed_ms = (time.perf_counter() - start) * 1000.0
        (logger or logging.getLogger(__name__)).log(
            level, "%s took %.3f ms", label, timer.elapsed_ms
        )
