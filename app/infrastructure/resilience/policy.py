"""Retry-on-error and poll-until primitives.

Two bounded helpers used around directory calls:

- ``retry_on_error`` re-runs an operation that failed with a specific,
  known-transient error kind.
- ``poll_until`` waits for eventual consistency after a create or delete.

``retry_on_error`` has two modes. ``RetryMode.LITERAL`` reproduces the
historical helper exactly: it sleeps once after a matching failure and
re-raises without ever re-invoking the operation. ``RetryMode.RETRY``
re-invokes the operation until it succeeds or the attempt budget runs out.
"""

import time
from enum import Enum
from typing import Callable, Tuple, Type, TypeVar, Union

import structlog

logger = structlog.get_logger().bind(component="retry_policy")

T = TypeVar("T")

ErrorMatcher = Union[
    Type[BaseException],
    Tuple[Type[BaseException], ...],
    Callable[[BaseException], bool],
]

DEFAULT_DELAY_MS = 250


class RetryMode(Enum):
    """Behaviour of retry_on_error after a matching failure.

    Values:
        LITERAL: sleep once, then re-raise the original failure
        RETRY: sleep and re-invoke, re-raising only when attempts run out
    """

    LITERAL = "literal"
    RETRY = "retry"


def _matches(error: BaseException, match: ErrorMatcher) -> bool:
    if isinstance(match, type) or isinstance(match, tuple):
        return isinstance(error, match)
    return bool(match(error))


def retry_on_error(
    operation: Callable[[], T],
    match: ErrorMatcher,
    delay_ms: int = DEFAULT_DELAY_MS,
    mode: RetryMode = RetryMode.RETRY,
    max_attempts: int = 5,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Invoke ``operation``, handling failures that match ``match``.

    Args:
        operation: Zero-argument callable to run
        match: Exception class, tuple of classes, or predicate on the exception
        delay_ms: Delay after each matching failure, in milliseconds
        mode: RetryMode.LITERAL or RetryMode.RETRY
        max_attempts: Total invocations allowed in RETRY mode
        sleep: Sleep function (seconds), injectable for tests

    Returns:
        The operation's return value

    Raises:
        The operation's exception. Non-matching failures propagate at once.
        In LITERAL mode a matching failure is re-raised after one delay. In
        RETRY mode the last matching failure is re-raised once the attempts
        are exhausted.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempts = 1 if mode == RetryMode.LITERAL else max_attempts
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as e:  # pylint: disable=broad-except
            if not _matches(e, match):
                raise
            logger.warning(
                "retry_on_error_matched",
                mode=mode.value,
                attempt=attempt,
                max_attempts=attempts,
                delay_ms=delay_ms,
                error=str(e),
            )
            sleep(delay_ms / 1000)
            if attempt >= attempts:
                raise


def poll_until(
    max_attempts: int,
    predicate: Callable[[], bool],
    delay_ms: int = DEFAULT_DELAY_MS,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call ``predicate`` until it is truthy or ``max_attempts`` are used.

    There is no delay after the final attempt.

    Args:
        max_attempts: Maximum number of predicate calls (at least 1)
        predicate: Zero-argument condition
        delay_ms: Delay between calls, in milliseconds
        sleep: Sleep function (seconds), injectable for tests

    Returns:
        True on the first truthy call, False when exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        if predicate():
            if attempt > 1:
                logger.debug("poll_until_satisfied", attempts=attempt)
            return True
        if attempt < max_attempts:
            sleep(delay_ms / 1000)

    logger.warning("poll_until_exhausted", max_attempts=max_attempts)
    return False
