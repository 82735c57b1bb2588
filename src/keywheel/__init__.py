from .adapters import AiohttpClient, HttpxClient, RequestsClient
from .auth import RotatingAuth
from .env import load_keyconfigs_from_env
from .errors import (
    FailoverExhausted,
    KeywheelError,
    NoCredentialAvailable,
    QuotaExceededError,
    UpstreamError,
    classify_error,
    is_quota_signal,
)
from .failover import acall_with_failover, call_with_failover
from .pool import KeyPool, require_keys
from .state import Lease, PoolStatus, SlotSnapshot
from .status import key_status_report, reset_keys
from .types import AuthConfig, KeyConfig, RetryConfig

__all__ = [
    "KeyConfig",
    "AuthConfig",
    "RetryConfig",
    "KeyPool",
    "Lease",
    "PoolStatus",
    "SlotSnapshot",
    "require_keys",
    "call_with_failover",
    "acall_with_failover",
    "KeywheelError",
    "NoCredentialAvailable",
    "QuotaExceededError",
    "UpstreamError",
    "FailoverExhausted",
    "classify_error",
    "is_quota_signal",
    "RequestsClient",
    "HttpxClient",
    "AiohttpClient",
    "RotatingAuth",
    "key_status_report",
    "reset_keys",
    "load_keyconfigs_from_env",
]
