import functools
import inspect
from collections.abc import Callable
from typing import Any


def ensure_async_callable(obj: Callable[..., Any]) -> None:
    """Rejects handlers that are not coroutine functions."""
    target = obj
    while isinstance(target, functools.partial):
        target = target.func

    if inspect.iscoroutinefunction(target):
        return

    if inspect.isfunction(target) or inspect.ismethod(target):
        raise TypeError(f"The handler {obj} must be async.")

    if not callable(target):
        raise TypeError(f"The handler {obj} is not callable.")

    if not inspect.iscoroutinefunction(type(target).__call__):
        raise TypeError(f"The handler {obj} __call__ function must be async.")
