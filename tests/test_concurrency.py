import threading

from keywheel import KeyPool


def test_concurrent_acquire_never_exceeds_capacity():
    pool = KeyPool(["a", "b", "c"], capacity_per_key=50)
    results = []
    results_lock = threading.Lock()
    start = threading.Barrier(10)

    def worker():
        start.wait()
        got = [pool.acquire() for _ in range(30)]
        with results_lock:
            results.extend(got)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    granted = [r for r in results if r is not None]
    assert len(granted) == 150  # noqa: PLR2004
    assert all(s.usage_count == 50 for s in pool.slots())  # noqa: PLR2004
    assert pool.status().remaining_capacity == 0


def test_concurrent_reports_are_not_lost():
    pool = KeyPool(["a"], capacity_per_key=10_000)

    def worker():
        for _ in range(500):
            pool.report_success(pool.acquire().ordinal)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    st = pool.status()
    assert st.total_usage == 4000  # noqa: PLR2004
    assert st.total_success == 4000  # noqa: PLR2004
