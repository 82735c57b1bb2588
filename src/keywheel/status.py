"""JSON-ready views of a KeyPool for key-status / reset-keys style endpoints."""

import math
from typing import Any, Union

from .pool import KeyPool


def format_cooldown(until: Union[float, None], now: float) -> str:
    """Human-readable cooldown expiry: "ready" or "in 1h 5m 3s"."""
    if until is None or until <= now:
        return "ready"
    remaining = math.ceil(until - now)
    hours, rest = divmod(remaining, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return "in " + " ".join(parts)


def key_status_report(pool: KeyPool) -> dict[str, Any]:
    st = pool.status()
    now = pool._now()
    return {
        "total_slots": st.total_slots,
        "healthy_slot_count": st.healthy_slot_count,
        "total_usage": st.total_usage,
        "total_success": st.total_success,
        "remaining_capacity": st.display_remaining,
        "remaining_capacity_raw": st.remaining_capacity,
        "capacity_percentage": st.capacity_percentage,
        "capacity_per_key": pool.capacity_per_key,
        "no_keys_configured": st.no_keys_configured,
        "keys": [
            {
                "index": s.index,
                "name": s.name,
                "healthy": s.healthy,
                "eligible": s.eligible,
                "usage_count": s.usage_count,
                "success_count": s.success_count,
                "error_count": s.error_count,
                "cooldown": format_cooldown(s.cooldown_until, now),
            }
            for s in pool.slots()
        ],
    }


def reset_keys(pool: KeyPool) -> dict[str, Any]:
    pool.reset_all()
    return key_status_report(pool)
