"""Retry policy for flaky store reads.

Only transient failures are retried. Permission, validation and not-found
errors surface on the first attempt.
"""

from __future__ import annotations

import time
from functools import wraps
from typing import Callable, TypeVar, cast

from flask import current_app, has_app_context
from sqlalchemy.exc import DisconnectionError, OperationalError

from patronat.services.store import TransientStoreError

T = TypeVar('T')
F = TypeVar('F', bound=Callable[..., object])

MAX_RETRY_ATTEMPTS = 20
RETRY_DELAY_SECONDS = 1.5

TRANSIENT_ERRORS = (
    TransientStoreError,
    OperationalError,
    DisconnectionError,
    ConnectionError,
    TimeoutError,
)


def is_transient(exc: BaseException) -> bool:
    """Return True when ``exc`` is worth retrying."""
    return isinstance(exc, TRANSIENT_ERRORS)


def _default_policy() -> tuple[int, float]:
    if has_app_context():
        return (
            current_app.config.get('STORE_RETRY_ATTEMPTS', MAX_RETRY_ATTEMPTS),
            current_app.config.get('STORE_RETRY_DELAY', RETRY_DELAY_SECONDS),
        )
    return MAX_RETRY_ATTEMPTS, RETRY_DELAY_SECONDS


def with_retry(
    operation: Callable[[], T],
    max_attempts: int | None = None,
    delay: float | None = None,
    *,
    retry_on: Callable[[BaseException], bool] = is_transient,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` and retry it on transient failures.

    Args:
        operation: Zero-argument callable to invoke
        max_attempts: Total attempts before giving up (config default: 20)
        delay: Fixed pause in seconds between attempts (config default: 1.5)
        retry_on: Predicate deciding whether an error is retryable
        sleep: Function used to wait between attempts

    Returns:
        Whatever ``operation`` returns

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error.
    """
    default_attempts, default_delay = _default_policy()
    attempts = max_attempts if max_attempts is not None else default_attempts
    pause = delay if delay is not None else default_delay
    if attempts < 1:
        raise ValueError('max_attempts must be at least 1')

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as e:
            if not retry_on(e) or attempt == attempts:
                raise
            if has_app_context():
                current_app.logger.warning(
                    f"Attempt {attempt}/{attempts} failed ({e.__class__.__name__}: {e}); retrying in {pause}s"
                )
            sleep(pause)

    raise AssertionError('unreachable')


def retrying(max_attempts: int | None = None, delay: float | None = None,
             retry_on: Callable[[BaseException], bool] = is_transient):
    """Decorator form of :func:`with_retry`."""
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            return with_retry(lambda: func(*args, **kwargs), max_attempts, delay, retry_on=retry_on)
        return cast(F, wrapper)
    return decorator


__all__ = ['with_retry', 'retrying', 'is_transient', 'MAX_RETRY_ATTEMPTS', 'RETRY_DELAY_SECONDS']
