# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Fixed-delay retry utilities.

Provisioning runs inside freshly booted cloud networking where the usual
failure is a name that does not resolve yet. The retry loop therefore waits a
constant delay and can run a hook (for example a DNS cache flush) before each
new attempt. There is no backoff growth and no jitter.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar, Union

T = TypeVar("T")

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


class RetryExhausted(Exception):
    """
    Raised by retry_operation when every attempt failed.

    `last_exception` is the failure of the final attempt; callers usually wrap
    it in a domain error.
    """

    def __init__(self, operation_name: str, attempts: int, last_exception: BaseException):
        super().__init__(f"{operation_name} failed after {attempts} attempts: {last_exception}")
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass(frozen=True)
class RetryPolicy:
    """
    attempts:      total number of tries (>= 1)
    delay_s:       constant sleep between tries
    before_retry:  called after the sleep and before the next try
    sleep:         injectable for tests
    """
    attempts: int = 30
    delay_s: float = 15.0
    before_retry: Optional[Callable[[], None]] = None
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"RetryPolicy.attempts must be >= 1 (got {self.attempts})")
        if self.delay_s < 0:
            raise ValueError(f"RetryPolicy.delay_s must be >= 0 (got {self.delay_s})")

    @classmethod
    def immediate(cls, attempts: int = 3) -> "RetryPolicy":
        """Zero-delay policy with no hook."""
        return cls(attempts=attempts, delay_s=0.0, before_retry=None)


def retry_operation(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    exceptions: ExceptionTypes = Exception,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.WARNING,
) -> T:
    """
    Run `operation` until it succeeds or `policy.attempts` is used up.

    Each failure matching `exceptions` is logged at `log_level`. Exceptions
    not matching `exceptions` propagate immediately.

    Raises:
        RetryExhausted: carrying the final failure

    Example:
        path = retry_operation(
            lambda: download(url),
            policy=RetryPolicy(attempts=5, delay_s=2.0),
            operation_name=f"download {url}",
            logger=log,
        )
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(1, policy.attempts + 1):
        try:
            return operation()
        except exceptions as e:
            last_exception = e

            if attempt >= policy.attempts:
                if logger:
                    logger.error("%s failed after %d attempts: %s", operation_name, policy.attempts, e)
                break

            if logger:
                logger.log(
                    log_level,
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                    operation_name,
                    attempt,
                    policy.attempts,
                    e,
                    policy.delay_s,
                )

            if policy.delay_s > 0:
                policy.sleep(policy.delay_s)
            if policy.before_retry is not None:
                policy.before_retry()

    assert last_exception is not None
    raise RetryExhausted(operation_name, policy.attempts, last_exception)

