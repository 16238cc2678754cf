import threading

from jobs.dispatcher import SEND_TIMEOUT_ERROR, send_in_batches, send_sub_batch


def test_sub_batches_run_in_order_with_pauses():
    sleeps = []
    seen = []

    def send_one(item):
        return True

    results = send_in_batches(
        list(range(7)),
        send_one,
        sub_batch_size=3,
        delay_seconds=1.5,
        on_result=lambda r: seen.append(r.item),
        sleep=sleeps.append,
    )

    assert [r.item for r in results] == list(range(7))
    assert seen == list(range(7))
    # pause between sub-batches only, never after the last
    assert sleeps == [1.5, 1.5]


def test_each_failure_is_isolated():
    def send_one(item):
        if item == "b":
            return False, "rejected"
        if item == "c":
            raise ConnectionError("reset by peer")
        return True, None

    results = send_in_batches(["a", "b", "c", "d"], send_one, sub_batch_size=2, sleep=lambda s: None)
    outcome = {r.item: (r.ok, r.error) for r in results}

    assert outcome["a"] == (True, None)
    assert outcome["b"] == (False, "rejected")
    assert outcome["c"] == (False, "reset by peer")
    assert outcome["d"] == (True, None)


def test_hung_send_counts_as_failure():
    release = threading.Event()

    def send_one(item):
        if item == "slow":
            release.wait(5)
        return True

    try:
        results = send_sub_batch(["fast", "slow"], send_one, timeout_seconds=0.2)
    finally:
        release.set()

    assert [(r.item, r.ok) for r in results] == [("fast", True), ("slow", False)]
    assert results[1].error == SEND_TIMEOUT_ERROR


def test_sends_inside_a_sub_batch_overlap():
    started = threading.Barrier(3, timeout=5)

    def send_one(item):
        # deadlocks unless all three run at once
        started.wait()
        return True

    results = send_sub_batch([1, 2, 3], send_one, timeout_seconds=5)
    assert all(r.ok for r in results)


def test_empty_input():
    assert send_in_batches([], lambda item: True, sleep=lambda s: None) == []
