"""Acquire / call / report loop around a KeyPool.

The pool only schedules keys; this module owns the retry policy. A quota failure puts
the key into cooldown and retries with another key, any other failure retries without
penalising the key, and an empty pool ends the request straight away.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar, Union

from .errors import ErrorKind, FailoverExhausted, NoCredentialAvailable, classify_error
from .pool import KeyPool
from .state import Lease
from .types import RetryConfig

T = TypeVar("T")

logger = logging.getLogger("keywheel")


def _resolve(pool: KeyPool, retry_config: Union[RetryConfig, None]) -> RetryConfig:
    return retry_config or pool.retry_config


def _acquire_or_raise(pool: KeyPool, last_err: Union[BaseException, None]) -> Lease:
    lease = pool.acquire()
    if lease is None:
        # keep the failure that used up the last key as the cause
        raise NoCredentialAvailable() from last_err
    return lease


def _record_failure(
    pool: KeyPool,
    lease: Lease,
    exc: BaseException,
    rc: RetryConfig,
    classify: Callable[[BaseException], ErrorKind],
    attempt: int,
) -> None:
    kind = classify(exc)
    if kind == "quota":
        pool.report_exhausted(lease.ordinal, rc.cooldown)
        logger.info(
            f"quota error on key index={lease.index}; rotating ({attempt}/{rc.max_attempts})"
        )
    else:
        logger.warning(
            f"request error on key index={lease.index} ({attempt}/{rc.max_attempts}): {exc}"
        )


def call_with_failover(
    pool: KeyPool,
    fn: Callable[[Lease], T],
    retry_config: Union[RetryConfig, None] = None,
    *,
    classify: Callable[[BaseException], ErrorKind] = classify_error,
    sleep: Union[Callable[[float], None], None] = None,
) -> T:
    """Run ``fn(lease)`` with key rotation.

    ``sleep`` defaults to ``time.sleep`` and is only called between attempts.

    Raises:
        NoCredentialAvailable: no key was eligible when an attempt started
        FailoverExhausted: every attempt failed; ``last_error`` holds the final failure
    """
    rc = _resolve(pool, retry_config)
    sleep = sleep or time.sleep
    last_err: Union[BaseException, None] = None
    for attempt in range(1, rc.max_attempts + 1):
        lease = _acquire_or_raise(pool, last_err)
        try:
            result = fn(lease)
        except Exception as e:
            _record_failure(pool, lease, e, rc, classify, attempt)
            last_err = e
            if attempt < rc.max_attempts:
                sleep(rc.delay_for(attempt))
            continue
        pool.report_success(lease.ordinal)
        return result
    raise FailoverExhausted(rc.max_attempts, last_err) from last_err


async def acall_with_failover(
    pool: KeyPool,
    fn: Callable[[Lease], Awaitable[T]],
    retry_config: Union[RetryConfig, None] = None,
    *,
    classify: Callable[[BaseException], ErrorKind] = classify_error,
    sleep: Union[Callable[[float], Awaitable[None]], None] = None,
) -> T:
    """Async flavour of :func:`call_with_failover`; ``fn`` returns an awaitable."""
    rc = _resolve(pool, retry_config)
    sleep = sleep or asyncio.sleep
    last_err: Union[BaseException, None] = None
    for attempt in range(1, rc.max_attempts + 1):
        lease = _acquire_or_raise(pool, last_err)
        try:
            result = await fn(lease)
        except Exception as e:
            _record_failure(pool, lease, e, rc, classify, attempt)
            last_err = e
            if attempt < rc.max_attempts:
                await sleep(rc.delay_for(attempt))
            continue
        pool.report_success(lease.ordinal)
        return result
    raise FailoverExhausted(rc.max_attempts, last_err) from last_err
