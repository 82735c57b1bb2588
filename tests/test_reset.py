from keywheel import KeyPool


def test_reset_all_restores_every_slot():
    pool = KeyPool(["a", "b", "c"], capacity_per_key=2)
    while (lease := pool.acquire()) is not None:
        pool.report_success(lease.ordinal)
    pool.report_exhausted(0)
    pool.report_exhausted(2)

    pool.reset_all()

    st = pool.status()
    assert st.remaining_capacity == 6  # noqa: PLR2004
    assert st.healthy_slot_count == 3  # noqa: PLR2004
    assert st.total_usage == 0
    for s in pool.slots():
        assert s.healthy and s.eligible
        assert s.usage_count == 0
        assert s.error_count == 0
        assert s.cooldown_until is None
    assert pool.acquire().ordinal == 0


def test_success_counts_kept_by_default():
    pool = KeyPool(["a"])
    pool.report_success(pool.acquire().ordinal)
    pool.reset_all()
    assert pool.status().total_success == 1


def test_success_counts_reset_when_configured():
    pool = KeyPool(["a"], reset_success_counts=True)
    pool.report_success(pool.acquire().ordinal)
    pool.reset_all()
    assert pool.status().total_success == 0
