"""
Slow-start batching for mutating API calls.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)


def do_it_slowly(count: int, initial_batch_size: int, fn: Callable[[], None]) -> Tuple[int, Optional[Exception]]:
    """
    Call ``fn`` ``count`` times in batches of growing size.

    The first batch has ``initial_batch_size`` calls and every successful
    batch doubles the next one, capped at the remaining work. Calls within a
    batch run in parallel. If any call in a batch raises, no further batch is
    started.

    Args:
        count: Total number of calls to make
        initial_batch_size: Size of the first batch
        fn: Zero-argument callable; raising means failure

    Returns:
        Tuple of (number of successful calls, first error or None)
    """
    remaining = count
    successes = 0
    batch_size = min(remaining, initial_batch_size)
    while batch_size > 0:
        errors = []
        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            futures = [executor.submit(fn) for _ in range(batch_size)]
        for future in futures:
            error = future.exception()
            if error is not None:
                errors.append(error)

        successes += batch_size - len(errors)
        if errors:
            logger.debug(f"Slow start stopped after {successes} successes: {errors[0]}")
            return successes, errors[0]

        remaining -= batch_size
        batch_size = min(2 * batch_size, remaining)
    return successes, None
