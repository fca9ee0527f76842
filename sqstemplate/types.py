from collections.abc import Awaitable, Callable
from typing import Any

from sqstemplate.datastructures import Context, WireAttributes

AsyncHandler = Callable[[Context[Any, Any]], Awaitable[Any]]
AsyncSimpleHandler = Callable[[Context[Any, WireAttributes]], Awaitable[Any]]
