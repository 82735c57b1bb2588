import asyncio
import logging
import time
from typing import Union

import httpx

from .errors import NoCredentialAvailable, is_quota_signal
from .pool import KeyPool
from .types import AuthConfig, RetryConfig

logger = logging.getLogger("keywheel")


class RotatingAuth(httpx.Auth):
    """httpx auth that signs each request with a pooled key and rotates on quota errors.

    Works with both ``httpx.Client`` and ``httpx.AsyncClient``:

        client = httpx.AsyncClient(auth=RotatingAuth(pool))

    Quota responses (429, or an error body whose ``error.status`` is RESOURCE_EXHAUSTED)
    put the key into cooldown and the request is resent with the next key, up to
    ``max_attempts`` sends, waiting ``RetryConfig.delay_for(n)`` before the n-th resend.
    Other error responses are returned to the caller without a resend and without
    penalising the key; only successful ones are reported back to the pool.
    """

    requires_response_body = True

    def __init__(
        self,
        pool: KeyPool,
        retry_config: Union[RetryConfig, None] = None,
        auth_config: Union[AuthConfig, None] = None,
    ):
        self.pool = pool
        self.retry_config = retry_config or pool.retry_config
        self.auth_config = auth_config or pool.auth_config

    def _sign(self, request: httpx.Request, token: str) -> None:
        ac = self.auth_config
        if ac.in_ == "query":
            request.url = request.url.copy_set_param(ac.query_param, token)
        else:
            request.headers[ac.header] = f"{ac.scheme} {token}".strip()

    def auth_flow(self, request: httpx.Request):
        attempts = 0
        while True:
            lease = self.pool.acquire()
            if lease is None:
                raise NoCredentialAvailable()
            self._sign(request, lease.token)
            response = yield request
            attempts += 1
            if response.status_code < 400:  # noqa: PLR2004
                self.pool.report_success(lease.ordinal)
                return
            if not is_quota_signal(response.status_code, response.text):
                return
            self.pool.report_exhausted(lease.ordinal, self.retry_config.cooldown)
            if attempts >= self.retry_config.max_attempts:
                return
            logger.info(f"quota response on key index={lease.index}; resending with next key")

    # Every request after the first one is a resend following a quota response,
    # so the drivers below back off before handing it to the transport.
    def sync_auth_flow(self, request: httpx.Request):
        flow = self.auth_flow(request)
        request = next(flow)
        resends = 0
        while True:
            response = yield request
            response.read()
            try:
                request = flow.send(response)
            except StopIteration:
                return
            resends += 1
            time.sleep(self.retry_config.delay_for(resends))

    async def async_auth_flow(self, request: httpx.Request):
        flow = self.auth_flow(request)
        request = next(flow)
        resends = 0
        while True:
            response = yield request
            await response.aread()
            try:
                request = flow.send(response)
            except StopIteration:
                return
            resends += 1
            await asyncio.sleep(self.retry_config.delay_for(resends))
