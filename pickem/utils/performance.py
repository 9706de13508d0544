"""
Performance monitoring utilities for the pick'em scoring service
"""

import functools
import inspect
import time

from flask import current_app, has_app_context

from pickem.utils.logging_config import ContextualLogger, get_logger

logger = get_logger(__name__)


def _call_logger(signature, context, args, kwargs):
    """Logger of the instance a method runs on, bound to the named call arguments"""
    log = getattr(args[0], "log", None) if args else None
    if not isinstance(log, ContextualLogger):
        log = ContextualLogger(logger)

    if context:
        arguments = signature.bind_partial(*args, **kwargs).arguments
        log = log.bind(**{name: arguments[name] for name in context if name in arguments})
    return log


def timer(func=None, *, context=()):
    """
    Decorator to time function execution

    Args:
        func: Function to time
        context: Argument names appended to the timing log lines

    Returns:
        Wrapped function with timing
    """
    if func is None:
        return functools.partial(timer, context=context)

    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        log = _call_logger(signature, context, args, kwargs)
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time

            # Log slow functions
            threshold = 1.0
            if has_app_context():
                threshold = current_app.config.get("SLOW_FUNCTION_THRESHOLD", 1.0)
            if execution_time > threshold:
                log.warning(
                    f"Slow function {func.__name__} took {execution_time:.2f}s "
                    f"(threshold: {threshold}s)",
                    extra={"event": "slow_function"},
                )
            else:
                log.debug(f"Function {func.__name__} executed in {execution_time:.2f}s")

            return result

        except Exception as e:
            execution_time = time.time() - start_time
            log.error(
                f"Function {func.__name__} failed after {execution_time:.2f}s: {str(e)}"
            )
            raise

    return wrapper
