from keywheel import KeyPool, key_status_report, reset_keys
from keywheel.status import format_cooldown


def test_status_on_empty_pool():
    st = KeyPool([]).status()
    assert st.total_slots == 0
    assert st.no_keys_configured is True
    assert st.capacity_percentage is None
    assert st.remaining_capacity == 0


def test_status_aggregates():
    pool = KeyPool(["a", "b"], capacity_per_key=10)
    for _ in range(5):
        lease = pool.acquire()
        pool.report_success(lease.ordinal)
    pool.acquire()
    pool.report_exhausted(1)

    st = pool.status()
    assert st.total_slots == 2  # noqa: PLR2004
    assert st.healthy_slot_count == 1
    assert st.total_usage == 6  # noqa: PLR2004
    assert st.total_success == 5  # noqa: PLR2004
    assert st.remaining_capacity == 14  # noqa: PLR2004
    assert st.capacity_percentage == 70  # noqa: PLR2004
    assert st.no_keys_configured is False


def test_healthy_count_excludes_saturated_slots():
    pool = KeyPool(["a", "b"], capacity_per_key=1)
    pool.acquire()
    assert pool.status().healthy_slot_count == 1


def test_remaining_is_unclamped_but_display_is_clamped():
    pool = KeyPool(["a"], capacity_per_key=5)
    pool._slots[0].usage_count = 7
    st = pool.status()
    assert st.remaining_capacity == -2  # noqa: PLR2004
    assert st.display_remaining == 0
    assert st.capacity_percentage == -40  # noqa: PLR2004


def test_format_cooldown():
    assert format_cooldown(None, 100.0) == "ready"
    assert format_cooldown(50.0, 100.0) == "ready"
    assert format_cooldown(142.0, 100.0) == "in 42s"
    assert format_cooldown(100.0 + 3600 + 65, 100.0) == "in 1h 1m 5s"
    assert format_cooldown(100.5, 100.0) == "in 1s"


def test_key_status_report_has_no_tokens(monkeypatch):
    pool = KeyPool(["SECRET-A", "SECRET-B"], capacity_per_key=3)
    monkeypatch.setattr(pool, "_now", lambda: 1000.0)
    pool.acquire()
    pool.report_exhausted(0, 90)

    report = key_status_report(pool)
    assert "SECRET" not in repr(report)
    assert report["total_slots"] == 2  # noqa: PLR2004
    assert report["remaining_capacity"] == 5  # noqa: PLR2004
    assert report["capacity_per_key"] == 3  # noqa: PLR2004
    first, second = report["keys"]
    assert first["index"] == 1
    assert first["healthy"] is False
    assert first["cooldown"] == "in 1m 30s"
    assert second["cooldown"] == "ready"
    assert second["eligible"] is True


def test_reset_keys_returns_fresh_report():
    pool = KeyPool(["a"], capacity_per_key=1)
    pool.acquire()
    pool.report_exhausted(0)
    report = reset_keys(pool)
    assert report["healthy_slot_count"] == 1
    assert report["keys"][0]["usage_count"] == 0
    assert report["keys"][0]["cooldown"] == "ready"


def test_capacity_percentage_rounds_half_up():
    pool = KeyPool(["a"], capacity_per_key=8)
    pool._slots[0].usage_count = 7
    assert pool.status().capacity_percentage == 13  # noqa: PLR2004
    pool._slots[0].usage_count = 5
    # 3/8 = 37.5%
    assert pool.status().capacity_percentage == 38  # noqa: PLR2004
