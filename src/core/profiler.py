import functools
import inspect
import logging
import time

logger = logging.getLogger(__name__)

SLOW_CALL_SECONDS = 10.0


class Profiler:
    """
    Provides a decorator to profile synchronous and asynchronous methods,
    logging their execution times. Calls slower than SLOW_CALL_SECONDS are
    reported at warning level.
    """

    @staticmethod
    def _report(func, elapsed):
        if elapsed >= SLOW_CALL_SECONDS:
            logger.warning(f"[Profiler] {func.__qualname__} took {elapsed:.4f}s")
        else:
            logger.debug(f"[Profiler] {func.__qualname__} took {elapsed:.4f}s")

    @staticmethod
    def profile(func):
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    Profiler._report(func, time.perf_counter() - start)

            return async_wrapper
        else:

            @functools.wraps(func)
            def sync_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return func(*args, **kwargs)
                finally:
                    Profiler._report(func, time.perf_counter() - start)

            return sync_wrapper
