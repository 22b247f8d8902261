"""Run a worker over files in fixed-size concurrent windows."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def windows(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into consecutive lists of ``size`` (the last may be shorter)."""
    if size < 1:
        raise ValueError(f"window size must be at least 1, got {size}")
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def process_all(
    files: Sequence[T],
    concurrency: int,
    worker: Callable[[T], None],
) -> None:
    """
    Run ``worker`` on every file, at most ``concurrency`` at a time.

    Files are processed window by window. Every worker in a window runs to
    completion before the next window starts. If any worker fails, the first
    failure (in file order) is raised after its window has settled and no
    later window is started.

    Args:
        files: Files to process, in order
        concurrency: Window size, i.e. the maximum number of concurrent workers
        worker: Callable invoked once per file
    """
    for index, window in enumerate(windows(files, concurrency)):
        logger.debug(f"Processing window {index + 1}: {len(window)} files")

        # Leaving the block joins every worker in the window
        with ThreadPoolExecutor(max_workers=len(window)) as pool:
            futures = [pool.submit(worker, item) for item in window]

        errors = [(item, f.exception()) for item, f in zip(window, futures)]
        failures = [(item, error) for item, error in errors if error is not None]
        if failures:
            for item, error in failures[1:]:
                logger.error(f"Worker failed for {item}: {error}")
            raise failures[0][1]
