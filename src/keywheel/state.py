from dataclasses import dataclass, field
from typing import Union


@dataclass
class CredentialSlot:
    ordinal: int
    name: str
    token: str = field(repr=False)
    healthy: bool = True
    usage_count: int = 0
    success_count: int = 0
    error_count: int = 0
    cooldown_until: Union[float, None] = None
    last_used_at: Union[float, None] = None

    @property
    def index(self) -> int:
        return self.ordinal + 1

    def cooling_down(self, now: float) -> bool:
        return self.cooldown_until is not None and self.cooldown_until > now

    def is_eligible(self, now: float, capacity: int) -> bool:
        # An expired cooldown restores eligibility without flipping `healthy` back.
        if self.cooling_down(now):
            return False
        if not self.healthy and self.cooldown_until is None:
            return False
        return self.usage_count < capacity


@dataclass(frozen=True)
class Lease:
    """A credential handed out by ``KeyPool.acquire``."""

    ordinal: int
    name: str
    token: str = field(repr=False)

    @property
    def index(self) -> int:
        return self.ordinal + 1


@dataclass(frozen=True)
class SlotSnapshot:
    index: int
    name: str
    healthy: bool
    eligible: bool
    usage_count: int
    success_count: int
    error_count: int
    cooldown_until: Union[float, None]
    last_used_at: Union[float, None]


@dataclass(frozen=True)
class PoolStatus:
    total_slots: int
    healthy_slot_count: int
    total_usage: int
    total_success: int
    remaining_capacity: int
    capacity_percentage: Union[int, None]

    @property
    def no_keys_configured(self) -> bool:
        return self.total_slots == 0

    @property
    def display_remaining(self) -> int:
        return max(0, self.remaining_capacity)
