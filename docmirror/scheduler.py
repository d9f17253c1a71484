"""
Bounded-concurrency task scheduling for the crawler.

A fixed pool of worker threads pulls tasks from one shared queue. The
scheduler owns the only shared mutable crawl state (the visited set and
the processed/error counters) and serialises every change to it behind
one lock. A crawl is finished when the queue is empty and no worker is
in the middle of a task.
"""

import logging
import queue
import threading
import time

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from docmirror.errors import ClassificationError, TransientFetchError
from docmirror.models import CrawlState, CrawlTask

logger = logging.getLogger(__name__)

_STOP = object()


class TaskScheduler:
    """
    Deduplicating work queue drained by a fixed pool of worker threads.

    Args:
        concurrency (int): Number of worker threads.
        max_depth (int): Tasks deeper than this are never created.
        max_retries (int): Extra attempts after a transient failure.
        retry_delay (float): Base backoff in seconds; attempt k waits k times this.
        checkpoint_interval (int): Call on_checkpoint every this many finished tasks.
        on_checkpoint (callable): Receives a CrawlState snapshot.
        retryable (tuple): Exception types that are retried.
        sleep (callable): Used for backoff waits.
    """

    def __init__(
        self,
        concurrency=8,
        max_depth=999,
        max_retries=2,
        retry_delay=0.5,
        checkpoint_interval=10,
        on_checkpoint=None,
        retryable=(TransientFetchError,),
        sleep=time.sleep,
    ):
        self.concurrency = concurrency
        self.max_depth = max_depth
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.checkpoint_interval = checkpoint_interval
        self.on_checkpoint = on_checkpoint
        self.retryable = retryable
        self._sleep = sleep

        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._visited = set()
        self._pending = 0
        self._finished = 0
        self._processed = 0
        self._errors = 0
        self._stopping = threading.Event()

    # Shared state accessors

    @property
    def processed_count(self):
        with self._lock:
            return self._processed

    @property
    def error_count(self):
        with self._lock:
            return self._errors

    @property
    def visited_count(self):
        with self._lock:
            return len(self._visited)

    @property
    def pending_count(self):
        """Tasks queued or running."""
        with self._lock:
            return self._pending

    @property
    def stopping(self):
        return self._stopping.is_set()

    def is_visited(self, url):
        with self._lock:
            return url in self._visited

    def snapshot(self):
        """Return the visited set and counters as a CrawlState."""
        with self._lock:
            return CrawlState.capture(self._visited, self._processed, self._errors)

    def restore(self, state: CrawlState):
        """Load visited URLs and counters from a checkpoint before the crawl starts."""
        with self._lock:
            self._visited.update(state.visited_urls)
            self._processed = state.processed_count
            self._errors = state.error_count
        logger.info(
            f"♻️ Restored crawl state: {len(state.visited_urls)} visited, "
            f"{state.processed_count} processed, {state.error_count} errors"
        )

    # Queue operations

    def enqueue(self, url, path_stack=(), depth=0, order=1):
        """
        Add a URL to the queue unless it was seen before or is too deep.

        The visited check and insert happen under one lock, so two workers
        discovering the same link at the same time create a single task.

        Args:
            url (str): Normalised URL.
            path_stack (sequence): Directory names for the task's parent.
            depth (int): Catalog hops from the start URL.
            order (int): 1-based position among its siblings.

        Returns:
            CrawlTask or None: The created task, or None if nothing was queued.
        """
        if self._stopping.is_set() or depth > self.max_depth:
            return None
        task = CrawlTask(url=url, path_stack=tuple(path_stack), depth=depth, order=order)
        with self._lock:
            if url in self._visited:
                return None
            self._visited.add(url)
            self._pending += 1
            self._queue.put(task)
        logger.debug(f"➕ Queued {url} (depth {depth}, order {order})")
        return task

    def run(self, handler, contexts=None):
        """
        Drain the queue with one worker thread per context.

        Each worker calls handler(task, context) for the tasks it pulls,
        so every worker keeps its own context (for example a browser
        session) for its whole life.

        Args:
            handler (callable): Executes one task. Raising a retryable
                exception triggers a retry; any other exception fails the task.
            contexts (list, optional): One object per worker. Defaults to
                `concurrency` workers with a None context.

        Returns:
            CrawlState: Snapshot taken once the crawl is quiescent.
        """
        if contexts is None:
            contexts = [None] * self.concurrency
        workers = []
        for index, context in enumerate(contexts, start=1):
            t = threading.Thread(
                target=self._work,
                args=(handler, context),
                name=f"crawl-worker-{index}",
                daemon=True,
            )
            t.start()
            workers.append(t)

        # Timed waits keep the calling thread responsive to signals
        with self._idle:
            while self._pending > 0:
                self._idle.wait(timeout=0.5)

        for _ in workers:
            self._queue.put(_STOP)
        for t in workers:
            t.join()
        return self.snapshot()

    def stop(self):
        """Stop accepting tasks and drop queued tasks that have not started."""
        if not self._stopping.is_set():
            logger.info("🛑 Scheduler stopping, in-flight tasks will finish")
        self._stopping.set()

    # Worker internals

    def _work(self, handler, context):
        while True:
            task = self._queue.get()
            if task is _STOP:
                break
            try:
                if self._stopping.is_set():
                    logger.debug(f"Skipping {task.url}, scheduler is stopping")
                    continue
                self._execute(handler, context, task)
            finally:
                self._task_finished()

    def _execute(self, handler, context, task):
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type(self.retryable),
            before_sleep=self._log_retry(task),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            retrying(handler, task, context)
        except self.retryable as e:
            self._record_failure(task, f"failed after {self.max_retries + 1} attempts: {e}")
        except ClassificationError as e:
            self._record_failure(task, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error processing {task.url}")
            self._record_failure(task, f"{type(e).__name__}: {e}")
        else:
            with self._lock:
                self._processed += 1

    def _log_retry(self, task):
        def before_sleep(retry_state):
            error = retry_state.outcome.exception()
            logger.warning(
                f"🔁 Retry {retry_state.attempt_number}/{self.max_retries} for {task.url} "
                f"in {retry_state.next_action.sleep:.1f}s: {error}"
            )

        return before_sleep

    def _record_failure(self, task, message):
        with self._lock:
            self._errors += 1
        logger.error(f"❌ {task.url}: {message}")

    def _task_finished(self):
        checkpoint = False
        with self._lock:
            self._pending -= 1
            self._finished += 1
            if self._finished % self.checkpoint_interval == 0:
                checkpoint = True
            if self._pending == 0:
                self._idle.notify_all()
        if checkpoint and self.on_checkpoint:
            try:
                self.on_checkpoint(self.snapshot())
            except Exception as e:
                logger.error(f"Checkpoint failed: {e}")
