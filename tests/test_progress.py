import threading

import pytest

from manifest_sync.core.progress import CompletionGate, ProgressTracker


@pytest.fixture
def finalized():
    return []


@pytest.fixture
def tracker(finalized):
    return ProgressTracker(on_finalize=lambda: finalized.append(True))


class TestProgressTrackerCounting:
    def test_ratio_is_zero_without_total(self, tracker):
        assert tracker.total == 0
        assert tracker.ratio == 0.0

    def test_ratio_tracks_completed_over_total(self, tracker):
        tracker.add_total(4)
        tracker.increment()
        assert tracker.ratio == 0.25

    def test_finalizes_when_completed_reaches_total(self, tracker, finalized):
        tracker.add_total(2)
        tracker.increment()
        assert finalized == []
        tracker.increment()
        assert finalized == [True]

    def test_failed_increments_still_count(self, tracker, finalized):
        tracker.add_total(2)
        tracker.increment(failed=True)
        tracker.increment()
        assert tracker.completed == 2
        assert tracker.failed == 1
        assert finalized == [True]

    def test_increment_beyond_total_is_ignored(self, tracker):
        tracker.add_total(1)
        assert tracker.increment() is True
        assert tracker.increment() is False
        assert tracker.completed == 1

    def test_total_cannot_shrink(self, tracker):
        with pytest.raises(ValueError):
            tracker.add_total(-1)

    def test_empty_total_finalizes_immediately(self, tracker, finalized):
        tracker.add_total(0)
        assert finalized == [True]
        assert tracker.ratio == 0.0

    def test_progress_listener_sees_each_change(self):
        seen = []
        tracker = ProgressTracker(on_progress=lambda c, t: seen.append((c, t)))
        tracker.add_total(2)
        tracker.increment()
        tracker.increment()
        assert seen == [(0, 2), (1, 2), (2, 2)]


class TestDiscoveryHolds:
    def test_hold_defers_completion(self, tracker, finalized):
        tracker.hold()
        tracker.add_total(1)
        tracker.increment()
        assert finalized == []
        tracker.release()
        assert finalized == [True]

    def test_all_holds_must_be_released(self, tracker, finalized):
        tracker.hold()
        tracker.hold()
        tracker.release()
        assert finalized == []
        tracker.add_total(0)
        assert finalized == []
        tracker.release()
        assert finalized == [True]

    def test_release_without_hold_is_harmless(self, tracker, finalized):
        tracker.add_total(1)
        tracker.release()
        assert finalized == []


class TestAbort:
    def test_abort_freezes_counters(self, tracker, finalized):
        tracker.add_total(2)
        tracker.increment()
        tracker.abort()
        assert tracker.increment() is False
        tracker.add_total(5)
        assert tracker.completed == 1
        assert tracker.total == 2
        assert finalized == []


class TestCompletionGate:
    def test_only_first_close_wins(self):
        gate = CompletionGate()
        assert gate.try_close() is True
        assert gate.try_close() is False
        assert gate.closed

    def test_exactly_one_thread_wins(self):
        gate = CompletionGate()
        barrier = threading.Barrier(32)
        winners = []

        def contend():
            barrier.wait()
            if gate.try_close():
                winners.append(threading.get_ident())

        threads = [threading.Thread(target=contend) for _ in range(32)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1


class TestConcurrentIncrements:
    def test_finalizes_once_under_concurrent_increments(self):
        for _ in range(20):
            calls = []
            calls_lock = threading.Lock()

            def on_finalize():
                with calls_lock:
                    calls.append(True)

            tracker = ProgressTracker(on_finalize=on_finalize)
            threads_count = 16
            per_thread = 50
            tracker.add_total(threads_count * per_thread)
            barrier = threading.Barrier(threads_count)

            def worker():
                barrier.wait()
                for _ in range(per_thread):
                    tracker.increment()

            threads = [threading.Thread(target=worker) for _ in range(threads_count)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert tracker.completed == tracker.total == threads_count * per_thread
            assert calls == [True]

    def test_completed_never_exceeds_total(self):
        tracker = ProgressTracker()
        tracker.add_total(100)
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(50):
                tracker.increment()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.completed == 100
