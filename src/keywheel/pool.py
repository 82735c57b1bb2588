import contextlib
import logging
import math
import threading
import time
from datetime import timedelta
from typing import Union

from .env import env_number, load_keyconfigs_from_env
from .errors import NoCredentialAvailable
from .state import CredentialSlot, Lease, PoolStatus, SlotSnapshot
from .types import AuthConfig, KeyConfig, RetryConfig

# Provider free tier is ~100 requests/day per key; keep a safety margin
DEFAULT_CAPACITY_PER_KEY = 95
DEFAULT_COOLDOWN_SECONDS = 60 * 60.0

CAPACITY_ENV = "KEYWHEEL_CAPACITY_PER_KEY"
COOLDOWN_ENV = "KEYWHEEL_COOLDOWN_SECONDS"

Duration = Union[float, int, timedelta]


def _seconds(value: Duration) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def _percent(part: int, whole: int) -> Union[int, None]:
    # half-up, so 1 of 8 left reads 13%
    if not whole:
        return None
    return math.floor(part / whole * 100 + 0.5)


def _coerce_keys(keys) -> list[KeyConfig]:
    configs: list[KeyConfig] = []
    for idx, k in enumerate(keys):
        if isinstance(k, KeyConfig):
            cfg = k
        elif isinstance(k, str):
            cfg = KeyConfig(name=f"key_{idx + 1}", token=k)
        else:
            raise TypeError("keys must be KeyConfig objects or strings")
        if cfg.token and cfg.token.strip():
            configs.append(cfg)
    return configs


class KeyPool:
    """Round-robin pool of API keys with quota cooldowns and usage telemetry.

    Callers ``acquire()`` a lease, make the provider call themselves, then report the
    outcome with ``report_success`` or ``report_exhausted``. Every operation is a short
    in-memory mutation serialized by a single lock, so one pool can be shared by threads
    and by asyncio handlers alike.
    """

    def __init__(
        self,
        keys: list[Union[KeyConfig, str]],
        capacity_per_key: int = DEFAULT_CAPACITY_PER_KEY,
        cooldown: Duration = DEFAULT_COOLDOWN_SECONDS,
        reset_success_counts: bool = False,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize a KeyPool.

        Args:
            keys (list[KeyConfig | str]): keys in rotation order; empty tokens are dropped
            capacity_per_key (int): assignments allowed per key per quota period
            cooldown (float | timedelta): default cooldown after quota exhaustion, in seconds
            reset_success_counts (bool): also zero success counts in reset_all()
            log_level (int | None): level for the "keywheel" logger
            kwargs:
            - retry_config: RetryConfig object
            - retry_attempts: int
            - retry_backoff: float
            - auth_config: AuthConfig object
            - auth_header: str
            - auth_scheme: str
            - auth_in: str
            - auth_query_param: str

        Raises:
            ValueError: if capacity_per_key < 1 or cooldown is negative or not finite
        """
        if int(capacity_per_key) < 1:
            raise ValueError("capacity_per_key must be at least 1")
        default_cooldown = _seconds(cooldown)
        if not math.isfinite(default_cooldown) or default_cooldown < 0:
            raise ValueError("cooldown must be a finite, non-negative number")
        self._capacity = int(capacity_per_key)
        self._default_cooldown = default_cooldown
        self._reset_success_counts = reset_success_counts
        self._slots: list[CredentialSlot] = [
            CredentialSlot(ordinal=i, name=cfg.name, token=cfg.token)
            for i, cfg in enumerate(_coerce_keys(keys))
        ]
        self._next_ordinal = 0
        self._lock = threading.Lock()
        self._logger = logging.getLogger("keywheel")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

        # Resolve retry settings used by the failover helpers and adapters
        if kwargs.get("retry_config") is not None:
            self._retry_config = kwargs["retry_config"]
        else:
            self._retry_config = RetryConfig(
                max_attempts=max(1, int(kwargs.get("retry_attempts", 3))),
                backoff=float(kwargs.get("retry_backoff", 1.0)),
            )
        # Resolve auth settings (prefer AuthConfig if provided)
        if kwargs.get("auth_config") is not None:
            self._auth_config = kwargs["auth_config"]
        else:
            self._auth_config = AuthConfig(
                header=kwargs.get("auth_header", "Authorization"),
                scheme=kwargs.get("auth_scheme", "Bearer"),
                in_=kwargs.get("auth_in", "header"),
                query_param=kwargs.get("auth_query_param", "key"),
            )

    def _now(self) -> float:
        return time.time()

    # ---------- accessors ----------

    @property
    def size(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def capacity_per_key(self) -> int:
        return self._capacity

    @property
    def default_cooldown(self) -> float:
        return self._default_cooldown

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @property
    def auth_config(self) -> AuthConfig:
        return self._auth_config

    def _slot(self, ordinal: int) -> Union[CredentialSlot, None]:
        if isinstance(ordinal, bool) or not isinstance(ordinal, int):
            return None
        if 0 <= ordinal < len(self._slots):
            return self._slots[ordinal]
        return None

    # ---------- selection ----------

    def acquire(self) -> Union[Lease, None]:
        """Hand out the next eligible key, or None when every key is unavailable.

        The scan starts at the rotation cursor and visits each slot at most once.
        """
        with self._lock:
            n = len(self._slots)
            now = self._now()
            for step in range(n):
                slot = self._slots[(self._next_ordinal + step) % n]
                if not slot.is_eligible(now, self._capacity):
                    continue
                slot.usage_count += 1
                slot.last_used_at = now
                self._next_ordinal = (slot.ordinal + 1) % n
                self._logger.debug(
                    f"acquired key index={slot.index} name={slot.name} "
                    f"usage={slot.usage_count}/{self._capacity}"
                )
                return Lease(ordinal=slot.ordinal, name=slot.name, token=slot.token)
        self._logger.info(f"no eligible key among {n} configured")
        return None

    # ---------- outcome reports ----------

    def report_success(self, ordinal: int) -> None:
        with self._lock:
            slot = self._slot(ordinal)
            if slot is None:
                self._logger.debug(f"ignoring success report for unknown ordinal {ordinal!r}")
                return
            slot.success_count += 1

    def report_exhausted(self, ordinal: int, cooldown: Union[Duration, None] = None) -> None:
        """Take a key out of rotation until its cooldown passes.

        Only call this for quota / rate-limit failures. Reporting twice re-arms the timer.

        Raises:
            ValueError: if cooldown is negative or not finite (nan, inf)
        """
        seconds = self._default_cooldown if cooldown is None else _seconds(cooldown)
        if not math.isfinite(seconds) or seconds < 0:
            raise ValueError("cooldown must be a finite, non-negative number")
        with self._lock:
            slot = self._slot(ordinal)
            if slot is None:
                self._logger.debug(f"ignoring exhaustion report for unknown ordinal {ordinal!r}")
                return
            slot.healthy = False
            slot.cooldown_until = self._now() + seconds
            slot.error_count += 1
        self._logger.warning(
            f"key index={slot.index} name={slot.name} exhausted; cooling down {seconds:.0f}s"
        )

    def reset_all(self) -> None:
        """Start a new quota period: every key healthy, usage and errors cleared."""
        with self._lock:
            for slot in self._slots:
                slot.healthy = True
                slot.usage_count = 0
                slot.cooldown_until = None
                slot.error_count = 0
                if self._reset_success_counts:
                    slot.success_count = 0
            self._next_ordinal = 0
        self._logger.info(f"reset {len(self._slots)} key(s) for a new quota period")

    # ---------- telemetry ----------

    def status(self) -> PoolStatus:
        with self._lock:
            now = self._now()
            total = len(self._slots)
            usage = sum(s.usage_count for s in self._slots)
            ceiling = total * self._capacity
            remaining = ceiling - usage
            return PoolStatus(
                total_slots=total,
                healthy_slot_count=sum(
                    1 for s in self._slots if s.is_eligible(now, self._capacity)
                ),
                total_usage=usage,
                total_success=sum(s.success_count for s in self._slots),
                remaining_capacity=remaining,
                capacity_percentage=_percent(remaining, ceiling),
            )

    def slots(self) -> list[SlotSnapshot]:
        with self._lock:
            now = self._now()
            return [
                SlotSnapshot(
                    index=s.index,
                    name=s.name,
                    healthy=s.healthy,
                    eligible=s.is_eligible(now, self._capacity),
                    usage_count=s.usage_count,
                    success_count=s.success_count,
                    error_count=s.error_count,
                    cooldown_until=s.cooldown_until,
                    last_used_at=s.last_used_at,
                )
                for s in self._slots
            ]

    # ---------- convenience: build keys from env ----------

    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Create a KeyPool from environment variables.

        Args:
            names (Iterable[str], optional): explicit variable names, in rotation order
            prefix (str, optional): include every variable starting with this prefix
            env_path (str, optional): .env file consulted for unset variables

            kwargs keywords:
            to_lower_names, split_commas, strip_prefix: forwarded to the loader
            everything else: forwarded to KeyPool()

        capacity_per_key and cooldown default to KEYWHEEL_CAPACITY_PER_KEY and
        KEYWHEEL_COOLDOWN_SECONDS when set.
        """
        loader_keys = {
            k: kwargs.pop(k)
            for k in list(kwargs.keys())
            if k in {"to_lower_names", "split_commas", "strip_prefix"}
        }
        keys = load_keyconfigs_from_env(
            names=names, prefix=prefix, env_path=env_path, **loader_keys
        )
        if "capacity_per_key" not in kwargs:
            kwargs["capacity_per_key"] = int(
                env_number(CAPACITY_ENV, DEFAULT_CAPACITY_PER_KEY, env_path)
            )
        if "cooldown" not in kwargs:
            kwargs["cooldown"] = env_number(COOLDOWN_ENV, DEFAULT_COOLDOWN_SECONDS, env_path)
        return cls(keys, **kwargs)


def require_keys(pool: KeyPool) -> KeyPool:
    """Fail service startup when no key is configured."""
    if len(pool) == 0:
        raise NoCredentialAvailable("no API keys configured")
    return pool
