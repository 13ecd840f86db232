"""Worker pools for block updates.

Blocks within a stage are independent once guard zones are exchanged, so
they are mapped over a thread pool. The numba kernels release the GIL, which
lets the threads run concurrently. With a single thread an inline pool
avoids the thread hand-off entirely.
"""

from __future__ import annotations

import logging
import os
from multiprocessing.pool import ThreadPool

logger = logging.getLogger(__name__)


class InlineWorkerPool:
    """Pool interface that runs tasks on the calling thread."""

    def map(self, func, iterable):
        return list(map(func, iterable))

    def close(self) -> None:
        pass

    def join(self) -> None:
        pass


def make_worker_pool(num_threads: int | None = None):
    """Return a pool with a blocking ``map``.

    Args:
        num_threads: Worker count; None means one per CPU core.
    """
    if num_threads is None:
        num_threads = os.cpu_count() or 1
    if num_threads <= 1:
        logger.debug("Using inline worker pool")
        return InlineWorkerPool()
    logger.info("Using thread pool with %d workers", num_threads)
    return ThreadPool(num_threads)
