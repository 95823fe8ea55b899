"""Timeout helper for calls into external adapters."""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from budgetsync.domain.errors import PortTimeoutError

T = TypeVar("T")


def call_with_timeout(func: Callable[..., T], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> T:
    """Call ``func`` and give up after ``timeout`` seconds.

    Without a timeout the call runs inline. With one, it runs on a worker
    thread; when the deadline passes a PortTimeoutError is raised and the
    worker is abandoned, so adapters should also honour their own timeouts.

    Raises:
        PortTimeoutError: If the call did not finish in time
    """
    if timeout is None:
        return func(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="budgetsync-port")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        raise PortTimeoutError(f"{getattr(func, '__qualname__', func)} timed out after {timeout}s")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
