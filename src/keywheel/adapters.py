import contextlib
from typing import Union

from .errors import QuotaExceededError, UpstreamError, is_quota_signal
from .failover import acall_with_failover, call_with_failover
from .pool import KeyPool
from .state import Lease
from .types import AuthConfig, RetryConfig

ERROR_STATUS_FLOOR = 400


def inject_key(
    auth: AuthConfig, lease: Lease, headers: Union[dict, None], params: Union[dict, None]
) -> tuple[dict, dict]:
    """Return copies of headers/params carrying the leased key."""
    headers = {**(headers or {})}
    params = {**(params or {})}
    if auth.in_ == "query":
        params[auth.query_param] = lease.token
    else:
        headers[auth.header] = f"{auth.scheme} {lease.token}".strip()
    return headers, params


def raise_for_provider_status(status: int, body: str) -> None:
    """Turn a provider error response into the exception the failover loop classifies."""
    if status < ERROR_STATUS_FLOOR:
        return
    message = f"HTTP {status}: {body[:500]}"
    if is_quota_signal(status, body):
        raise QuotaExceededError(message, status_code=status)
    raise UpstreamError(message, status_code=status)


class _ClientBase:
    def __init__(
        self,
        pool: KeyPool,
        retry_config: Union[RetryConfig, None] = None,
        auth_config: Union[AuthConfig, None] = None,
    ):
        self.pool = pool
        self.retry_config = retry_config or pool.retry_config
        self.auth_config = auth_config or pool.auth_config


# ---------- requests (sync) ----------
class RequestsClient(_ClientBase):
    """requests.Session wrapper that rotates keys on quota errors.

    Usage:
        with RequestsClient(pool) as client:
            resp = client.post(url, json=payload)
    """

    def __init__(self, pool: KeyPool, session=None, **kwargs):
        super().__init__(pool, **kwargs)
        self.session = session
        self._own_session = False

    def __enter__(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._own_session:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None
            self._own_session = False
        return False

    def request(self, method: str, url: str, **kwargs):
        headers = kwargs.pop("headers", None)
        params = kwargs.pop("params", None)

        def _send(lease: Lease):
            h, p = inject_key(self.auth_config, lease, headers, params)
            resp = self.session.request(method, url, headers=h, params=p, **kwargs)
            raise_for_provider_status(resp.status_code, resp.text)
            return resp

        return call_with_failover(self.pool, _send, self.retry_config)

    def get(self, url: str, **kw):
        return self.request("GET", url, **kw)

    def post(self, url: str, **kw):
        return self.request("POST", url, **kw)


# ---------- httpx (async) ----------
class HttpxClient(_ClientBase):
    def __init__(self, pool: KeyPool, client=None, **kwargs):
        super().__init__(pool, **kwargs)
        self.client = client
        self._own_client = False

    async def __aenter__(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient()
            self._own_client = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._own_client:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None
            self._own_client = False
        return False

    async def request(self, method: str, url: str, **kwargs):
        headers = kwargs.pop("headers", None)
        params = kwargs.pop("params", None)

        async def _send(lease: Lease):
            h, p = inject_key(self.auth_config, lease, headers, params)
            resp = await self.client.request(method, url, headers=h, params=p, **kwargs)
            raise_for_provider_status(resp.status_code, resp.text)
            return resp

        return await acall_with_failover(self.pool, _send, self.retry_config)

    async def get(self, url: str, **kw):
        return await self.request("GET", url, **kw)

    async def post(self, url: str, **kw):
        return await self.request("POST", url, **kw)


# ---------- aiohttp (async) ----------
class AiohttpClient(_ClientBase):
    """aiohttp.ClientSession wrapper; returned responses already have their body read."""

    def __init__(self, pool: KeyPool, session=None, **kwargs):
        super().__init__(pool, **kwargs)
        self.session = session
        self._own_session = False

    async def __aenter__(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
            self._own_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._own_session:
            await self.session.close()
            self.session = None
            self._own_session = False
        return False

    async def request(self, method: str, url: str, **kwargs):
        headers = kwargs.pop("headers", None)
        params = kwargs.pop("params", None)

        async def _send(lease: Lease):
            h, p = inject_key(self.auth_config, lease, headers, params)
            async with self.session.request(method, url, headers=h, params=p, **kwargs) as resp:
                body = await resp.read()
                raise_for_provider_status(resp.status, body.decode("utf-8", "replace"))
                return resp

        return await acall_with_failover(self.pool, _send, self.retry_config)

    async def get(self, url: str, **kw):
        return await self.request("GET", url, **kw)

    async def post(self, url: str, **kw):
        return await self.request("POST", url, **kw)
