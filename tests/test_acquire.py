from keywheel import KeyPool


def test_capacity_bounds_total_acquisitions():
    pool = KeyPool(["a", "b", "c"], capacity_per_key=4)
    leases = [pool.acquire() for _ in range(12)]
    assert all(lease is not None for lease in leases)
    assert pool.acquire() is None
    assert all(s.usage_count == 4 for s in pool.slots())  # noqa: PLR2004


def test_round_robin_order():
    pool = KeyPool(["a", "b", "c"])
    ordinals = [pool.acquire().ordinal for _ in range(6)]
    assert ordinals == [0, 1, 2, 0, 1, 2]


def test_lease_carries_token_and_index():
    pool = KeyPool(["a", "b"])
    pool.acquire()
    lease = pool.acquire()
    assert lease.token == "b"
    assert lease.index == 2  # noqa: PLR2004
    assert lease.name == "key_2"


def test_cursor_moves_past_selected_slot_only():
    pool = KeyPool(["a", "b", "c"])
    pool.report_exhausted(1)
    assert pool.acquire().ordinal == 0
    # slot 1 is skipped, the cursor lands after slot 2
    assert pool.acquire().ordinal == 2  # noqa: PLR2004
    assert pool.acquire().ordinal == 0


def test_never_same_slot_twice_while_another_is_eligible():
    pool = KeyPool(["a", "b"], capacity_per_key=10)
    prev = None
    for _ in range(20):
        lease = pool.acquire()
        assert lease.ordinal != prev
        prev = lease.ordinal


def test_single_saturated_slot_falls_through_to_next():
    pool = KeyPool(["a", "b"], capacity_per_key=3)
    pool._slots[0].usage_count = 3
    assert [pool.acquire().ordinal for _ in range(3)] == [1, 1, 1]
    assert pool.acquire() is None


def test_empty_pool_acquire_returns_none():
    assert KeyPool([]).acquire() is None


def test_last_used_at_recorded(monkeypatch):
    pool = KeyPool(["a"])
    monkeypatch.setattr(pool, "_now", lambda: 1234.5)
    pool.acquire()
    assert pool.slots()[0].last_used_at == 1234.5  # noqa: PLR2004
