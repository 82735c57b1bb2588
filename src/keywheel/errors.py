"""Exceptions and the quota-vs-other classification used by the failover loop."""

import json
from typing import Literal, Union

QUOTA_STATUS_CODE = 429
QUOTA_ERROR_STATUS = "RESOURCE_EXHAUSTED"

# Only consulted when there is no HTTP status to go on
_QUOTA_PHRASES = (
    "resource_exhausted",
    "resource exhausted",
    "quota exceeded",
    "exceeded your current quota",
    "too many requests",
)

ErrorKind = Literal["quota", "other"]


class KeywheelError(Exception):
    """Base class for keywheel errors."""


class NoCredentialAvailable(KeywheelError):
    """Raised when no key in the pool is eligible; no downstream call was made."""

    def __init__(self, message: str = "all credentials exhausted, retry later"):
        super().__init__(message)


class _DownstreamError(KeywheelError):
    def __init__(self, message: str, status_code: Union[int, None] = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(_DownstreamError):
    """The provider reported quota exhaustion or rate limiting for the key."""


class UpstreamError(_DownstreamError):
    """Any other provider failure; does not count against the key."""


class FailoverExhausted(KeywheelError):
    def __init__(self, attempts: int, last_error: Union[BaseException, None]):
        super().__init__(f"request failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_quota_signal(status_code: Union[int, None] = None, message: Union[str, None] = None) -> bool:
    """True when a provider failure means the key ran out of quota.

    With a status code, only 429 counts, or a JSON error body whose ``error.status`` is
    exactly ``RESOURCE_EXHAUSTED``. Without one, the message must contain a specific
    provider phrase; the bare word "quota" is not enough.
    """
    if status_code == QUOTA_STATUS_CODE:
        return True
    if not message:
        return False
    if status_code is not None:
        return _error_status(message) == QUOTA_ERROR_STATUS
    lower = message.lower()
    return any(p in lower for p in _QUOTA_PHRASES)


def _error_status(body: str) -> Union[str, None]:
    # Google style: {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", ...}}
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("error"), dict):
        return None
    status = payload["error"].get("status")
    return status if isinstance(status, str) else None


def _status_of(exc: BaseException) -> Union[int, None]:
    # requests.HTTPError / httpx.HTTPStatusError carry .response; aiohttp uses .status
    resp = getattr(exc, "response", None)
    if resp is not None:
        code = getattr(resp, "status_code", None)
        if code is None:
            code = getattr(resp, "status", None)
        if isinstance(code, int):
            return code
    for attr in ("status_code", "status"):
        code = getattr(exc, attr, None)
        if isinstance(code, int):
            return code
    return None


def _is_transport_error(exc: BaseException) -> bool:
    import aiohttp  # noqa: PLC0415
    import httpx  # noqa: PLC0415
    import requests  # noqa: PLC0415

    return isinstance(
        exc,
        (
            requests.ConnectionError,
            requests.Timeout,
            httpx.TransportError,
            aiohttp.ClientConnectionError,
        ),
    )


def classify_error(exc: BaseException) -> ErrorKind:
    """Decide whether a downstream failure should put the key into cooldown.

    Only quota/rate-limit signals return ``"quota"``. Network failures, timeouts and
    malformed requests are ``"other"`` and leave the key in rotation.
    """
    if isinstance(exc, QuotaExceededError):
        return "quota"
    if isinstance(exc, UpstreamError):
        return "quota" if exc.status_code == QUOTA_STATUS_CODE else "other"
    if _is_transport_error(exc):
        return "other"
    if is_quota_signal(_status_of(exc), str(exc)):
        return "quota"
    return "other"
