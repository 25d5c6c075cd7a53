import logging
import time
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec('P')
R = TypeVar('R')


def _log_duration(label: str, func: Callable, execution_time: float) -> None:
	name = label.strip('-') or func.__name__
	logger.debug(f'⏳ {name}() took {execution_time:.2f}s')


def time_execution_sync(additional_text: str = '') -> Callable[[Callable[P, R]], Callable[P, R]]:
	def decorator(func: Callable[P, R]) -> Callable[P, R]:
		@wraps(func)
		def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
			start_time = time.perf_counter()
			result = func(*args, **kwargs)
			_log_duration(additional_text, func, time.perf_counter() - start_time)
			return result

		return wrapper

	return decorator


def time_execution_async(
	additional_text: str = '',
) -> Callable[[Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]]:
	def decorator(func: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, Coroutine[Any, Any, R]]:
		@wraps(func)
		async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
			start_time = time.perf_counter()
			result = await func(*args, **kwargs)
			_log_duration(additional_text, func, time.perf_counter() - start_time)
			return result

		return wrapper

	return decorator


def truncate(text: str, limit: int, suffix: str = '...') -> str:
	text = ' '.join((text or '').split())
	if len(text) <= limit:
		return text
	return text[:limit] + suffix
