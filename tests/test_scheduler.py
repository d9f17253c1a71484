"""Unit tests for the task scheduler."""

import threading

import pytest

from docmirror.errors import ClassificationError, TransientFetchError
from docmirror.models import CrawlState
from docmirror.scheduler import TaskScheduler


class SleepRecorder:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeps():
    return SleepRecorder()


def make_scheduler(sleeps, **kwargs):
    kwargs.setdefault("concurrency", 4)
    kwargs.setdefault("max_depth", 10)
    kwargs.setdefault("max_retries", 2)
    kwargs.setdefault("retry_delay", 0.5)
    return TaskScheduler(sleep=sleeps, **kwargs)


class TestEnqueue:
    def test_duplicate_url_creates_one_task(self, sleeps):
        scheduler = make_scheduler(sleeps)
        assert scheduler.enqueue("https://a/1") is not None
        assert scheduler.enqueue("https://a/1", depth=3, order=2) is None
        assert scheduler.pending_count == 1
        assert scheduler.visited_count == 1

    def test_too_deep_is_ignored_and_not_marked_visited(self, sleeps):
        scheduler = make_scheduler(sleeps, max_depth=1)
        assert scheduler.enqueue("https://a/deep", depth=2) is None
        assert not scheduler.is_visited("https://a/deep")
        assert scheduler.enqueue("https://a/deep", depth=1) is not None

    def test_task_fields(self, sleeps):
        scheduler = make_scheduler(sleeps)
        task = scheduler.enqueue("https://a/1", ["01-Guide"], depth=2, order=3)
        assert task.url == "https://a/1"
        assert task.path_stack == ("01-Guide",)
        assert task.depth == 2
        assert task.order == 3

    def test_concurrent_discovery_creates_one_task(self, sleeps):
        scheduler = make_scheduler(sleeps)
        barrier = threading.Barrier(16)
        created = []
        lock = threading.Lock()

        def discover():
            barrier.wait()
            task = scheduler.enqueue("https://a/shared", depth=1)
            if task:
                with lock:
                    created.append(task)

        threads = [threading.Thread(target=discover) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert scheduler.pending_count == 1

    def test_restore_marks_urls_visited(self, sleeps):
        scheduler = make_scheduler(sleeps)
        scheduler.restore(CrawlState(frozenset({"https://a/1"}), 5, 2))
        assert scheduler.enqueue("https://a/1") is None
        assert scheduler.processed_count == 5
        assert scheduler.error_count == 2


class TestRun:
    def test_drains_tasks_spawned_during_run(self, sleeps):
        scheduler = make_scheduler(sleeps)
        seen = []
        lock = threading.Lock()

        def handler(task, context):
            with lock:
                seen.append(task.url)
            if task.depth < 2:
                for i in range(1, 4):
                    scheduler.enqueue(f"{task.url}/{i}", depth=task.depth + 1, order=i)

        scheduler.enqueue("https://a", depth=0)
        state = scheduler.run(handler)

        # 1 root, 3 children, 9 grandchildren
        assert len(seen) == 13
        assert len(set(seen)) == 13
        assert scheduler.processed_count == 13
        assert scheduler.error_count == 0
        assert scheduler.pending_count == 0
        assert len(state.visited_urls) == 13

    def test_each_worker_gets_its_own_context(self, sleeps):
        scheduler = make_scheduler(sleeps)
        contexts = [object(), object(), object()]
        used = set()
        lock = threading.Lock()

        def handler(task, context):
            with lock:
                used.add(id(context))

        for i in range(30):
            scheduler.enqueue(f"https://a/{i}")
        scheduler.run(handler, contexts)

        assert used <= {id(c) for c in contexts}

    def test_run_with_empty_queue_returns(self, sleeps):
        scheduler = make_scheduler(sleeps)
        state = scheduler.run(lambda task, context: None)
        assert state.processed_count == 0


class TestRetry:
    def test_recovers_after_transient_failures(self, sleeps):
        scheduler = make_scheduler(sleeps, max_retries=2, retry_delay=0.5)
        attempts = []

        def handler(task, context):
            attempts.append(task.url)
            if len(attempts) < 3:
                raise TransientFetchError("timeout")

        scheduler.enqueue("https://a/1")
        scheduler.run(handler)

        assert len(attempts) == 3
        assert scheduler.processed_count == 1
        assert scheduler.error_count == 0
        assert sleeps.delays == pytest.approx([0.5, 1.0])

    def test_exhausted_retries_fail_task_but_not_queue(self, sleeps):
        scheduler = make_scheduler(sleeps, concurrency=1, max_retries=2)
        attempts = {}

        def handler(task, context):
            attempts[task.url] = attempts.get(task.url, 0) + 1
            if task.url == "https://a/bad":
                raise TransientFetchError("network down")

        scheduler.enqueue("https://a/bad")
        scheduler.enqueue("https://a/good")
        scheduler.run(handler)

        assert attempts == {"https://a/bad": 3, "https://a/good": 1}
        assert scheduler.error_count == 1
        assert scheduler.processed_count == 1
        assert len(sleeps.delays) == 2

    def test_classification_error_is_not_retried(self, sleeps):
        scheduler = make_scheduler(sleeps)
        attempts = []

        def handler(task, context):
            attempts.append(task.url)
            raise ClassificationError("unknown page")

        scheduler.enqueue("https://a/1")
        scheduler.run(handler)

        assert attempts == ["https://a/1"]
        assert scheduler.error_count == 1
        assert sleeps.delays == []

    def test_unexpected_error_is_contained(self, sleeps):
        scheduler = make_scheduler(sleeps)

        def handler(task, context):
            if task.url.endswith("boom"):
                raise RuntimeError("bug")

        scheduler.enqueue("https://a/boom")
        scheduler.enqueue("https://a/fine")
        scheduler.run(handler)

        assert scheduler.error_count == 1
        assert scheduler.processed_count == 1


class TestCheckpointAndStop:
    def test_checkpoint_every_interval(self, sleeps):
        snapshots = []
        scheduler = make_scheduler(sleeps, checkpoint_interval=2, on_checkpoint=snapshots.append)
        for i in range(5):
            scheduler.enqueue(f"https://a/{i}")
        scheduler.run(lambda task, context: None)

        assert len(snapshots) == 2
        assert all(isinstance(s, CrawlState) for s in snapshots)
        assert all(len(s.visited_urls) == 5 for s in snapshots)

    def test_failing_checkpoint_does_not_stop_crawl(self, sleeps):
        def broken(state):
            raise OSError("disk full")

        scheduler = make_scheduler(sleeps, checkpoint_interval=1, on_checkpoint=broken)
        for i in range(3):
            scheduler.enqueue(f"https://a/{i}")
        scheduler.run(lambda task, context: None)
        assert scheduler.processed_count == 3

    def test_stop_drops_queued_and_refuses_new_tasks(self, sleeps):
        scheduler = make_scheduler(sleeps, concurrency=1)
        handled = []

        def handler(task, context):
            handled.append(task.url)
            scheduler.stop()
            assert scheduler.enqueue("https://a/new") is None

        for i in range(5):
            scheduler.enqueue(f"https://a/{i}")
        scheduler.run(handler)

        assert handled == ["https://a/0"]
        assert scheduler.processed_count == 1
        assert scheduler.pending_count == 0
        assert scheduler.stopping
