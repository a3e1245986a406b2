"""
Clock and timeout helpers shared by the agents, repositories and scheduler.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Type
import logging

from models.errors import RepositoryTimeout, SignalEngineError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime in the engine is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def call_with_timeout(
    func: Callable[..., Any],
    timeout: Optional[float],
    *args,
    error_cls: Type[SignalEngineError] = RepositoryTimeout,
    label: str = "",
    **kwargs,
) -> Any:
    """
    Run `func(*args, **kwargs)` and wait at most `timeout` seconds for it.

    On timeout `error_cls` is raised and the worker thread is abandoned
    (Python threads cannot be killed; the call finishes in the background).
    Exceptions raised by `func` propagate unchanged. `timeout=None` calls
    `func` inline.
    """
    if timeout is None:
        return func(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        name = label or getattr(func, "__qualname__", repr(func))
        logger.error(f"⏱️  {name} timed out after {timeout:.1f}s")
        raise error_cls(f"{name} timed out after {timeout:.1f}s")
    finally:
        executor.shutdown(wait=False)
