"""
Batch scheduler for analysing many buffers with bounded parallelism.

Items move through ``QUEUED -> PROCESSING -> DONE | FAILED``. Each
scheduling pass admits up to ``concurrency_limit`` items from the front of
the queue, runs their pipelines concurrently on a thread pool and waits for
all of them before admitting the next pass.

Cancelling a drain does not abandon its pipelines. They keep running on the
pool and settle their items when they return, so the slots they hold are
released and later drains wait for them instead of stalling.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import (
    AsyncIterator,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Tuple,
    Union,
)

from trueaudio.core.engine import QualityAnalysisEngine
from trueaudio.core.models import BatchOutcome, ItemStatus, PcmBuffer, QueueItem, Verdict
from trueaudio.core.queue_manager import PendingQueue
from trueaudio.utils.config import BatchConfig, validate_concurrency_limit
from trueaudio.utils.logging import create_logger_with_context

Listener = Callable[[BatchOutcome], None]
Submission = Union[Tuple[Hashable, PcmBuffer], QueueItem]

SLOT_POLL_INTERVAL = 0.05  # seconds


@dataclass(frozen=True)
class BatchStats:
    """Aggregate counts reported by the scheduler."""

    total_submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0
    pending: int = 0
    processing: int = 0
    peak_processing: int = 0
    best_score: Optional[int] = None
    worst_score: Optional[int] = None
    average_score: Optional[float] = None
    total_time: float = 0.0

    @property
    def finished(self) -> int:
        return self.completed + self.failed

    @property
    def is_idle(self) -> bool:
        return self.pending == 0 and self.processing == 0

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.finished == 0:
            return 0.0
        return (self.completed / self.finished) * 100


class BatchScheduler:
    """
    Drains a queue of PCM buffers through an analysis engine.

    The queue, the item map and the in-flight counter are the only shared
    mutable state; they change under ``self._lock``. Pipelines themselves
    share nothing, so they run on the executor without locking.
    """

    def __init__(
        self,
        engine: QualityAnalysisEngine,
        concurrency_limit: int = 2,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize batch scheduler.

        Args:
            engine: Analysis engine instance (dependency injection)
            concurrency_limit: Maximum items in PROCESSING at once
            executor: Optional thread pool to run pipelines on
            max_workers: Pool size when the scheduler creates its own pool
                (defaults to the concurrency limit)
        """
        self.engine = engine
        self._limit = validate_concurrency_limit(concurrency_limit)
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or self._limit,
            thread_name_prefix="trueaudio",
        )

        self._lock = threading.Lock()
        self._items: Dict[Hashable, QueueItem] = {}
        self._pending = PendingQueue()
        self._processing = 0
        self._listeners: List[Listener] = []
        self._run_task: Optional[asyncio.Future] = None

        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._dropped = 0
        self._peak_processing = 0
        self._scores: List[int] = []
        self._busy_time = 0.0

        self.logger = logging.getLogger("batch_processor")

    @property
    def concurrency_limit(self) -> int:
        return self._limit

    @property
    def processing_count(self) -> int:
        with self._lock:
            return self._processing

    @property
    def is_running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    def set_concurrency_limit(self, limit: int) -> None:
        """
        Change the concurrency limit for future scheduling passes.

        Items already processing are unaffected.

        Raises:
            ConfigurationError: If ``limit`` is not an integer >= 1
        """
        validate_concurrency_limit(limit)
        with self._lock:
            self._limit = limit
        self.logger.info(f"Concurrency limit set to {limit}")

    def submit(self, items: Iterable[Submission]) -> List[QueueItem]:
        """
        Queue items for analysis without running them.

        Args:
            items: ``(id, PcmBuffer)`` pairs or prepared QueueItems

        Returns:
            The queued items, in submission order

        Raises:
            ValueError: If an id is duplicated or already known
        """
        queued = [self._to_queue_item(entry) for entry in items]

        with self._lock:
            ids = [item.id for item in queued]
            if len(set(ids)) != len(ids):
                raise ValueError("Duplicate item ids in submission")
            known = [item_id for item_id in ids if item_id in self._items]
            if known:
                raise ValueError(f"Item id(s) already submitted: {known}")

            for item in queued:
                self._items[item.id] = item
                self._pending.add(item.id)
            self._submitted += len(queued)

        if queued:
            self.logger.info(f"Submitted {len(queued)} item(s) for analysis")
        return queued

    async def submit_batch(self, items: Iterable[Submission]) -> AsyncIterator[BatchOutcome]:
        """
        Submit items and yield one outcome per item as each completes.

        Outcomes arrive in completion order, not submission order. Items
        dropped by ``clear_pending`` produce no outcome. If the drain ends
        while items of this batch are still queued (for example because it
        was cancelled), a new drain is started for them.
        """
        remaining = {item.id for item in self.submit(items)}
        outcomes: "asyncio.Queue[BatchOutcome]" = asyncio.Queue()

        def collect(outcome: BatchOutcome) -> None:
            if outcome.id in remaining:
                outcomes.put_nowait(outcome)

        self.subscribe(collect)
        try:
            runner: Optional[asyncio.Future] = self._ensure_running()
            while remaining:
                getter = asyncio.ensure_future(outcomes.get())
                waiting = {getter} if runner is None else {getter, runner}
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                if getter in done:
                    outcome = getter.result()
                    remaining.discard(outcome.id)
                    yield outcome
                    continue

                getter.cancel()
                if not runner.cancelled():
                    runner.result()
                while not outcomes.empty():
                    outcome = outcomes.get_nowait()
                    remaining.discard(outcome.id)
                    yield outcome

                statuses = {self.status(item_id) for item_id in remaining}
                if ItemStatus.QUEUED in statuses:
                    runner = self._ensure_running()
                elif ItemStatus.PROCESSING in statuses:
                    # Settled by the pool once the pipelines return
                    runner = None
                else:
                    break
        finally:
            self.unsubscribe(collect)

    async def run(self) -> BatchStats:
        """
        Drain the queue and return aggregate statistics once idle.

        Concurrent callers share the same drain.
        """
        return await self._ensure_running()

    def _ensure_running(self) -> asyncio.Future:
        # A drain that is not done will still admit newly queued items
        if not self.is_running:
            self._run_task = asyncio.ensure_future(self._drain())
        return self._run_task

    async def _drain(self) -> BatchStats:
        started = time.time()
        passes = 0
        try:
            while True:
                batch = self._admit()
                if not batch:
                    if self._pending_count() and self.processing_count:
                        # Slots still held by pipelines of a cancelled drain
                        await asyncio.sleep(SLOT_POLL_INTERVAL)
                        continue
                    break
                passes += 1
                self.logger.debug(f"Pass {passes}: processing {len(batch)} item(s)")
                running = [(item, self._start(item)) for item in batch]
                try:
                    await asyncio.gather(
                        *(self._process(item, future) for item, future in running)
                    )
                except asyncio.CancelledError:
                    self.logger.warning(
                        f"Drain cancelled with {len(running)} item(s) in flight; "
                        f"they will finish in the background"
                    )
                    loop = asyncio.get_running_loop()
                    for item, future in running:
                        self._settle_when_done(item, future, loop)
                    raise
        finally:
            with self._lock:
                self._busy_time += time.time() - started

        stats = self.stats()
        self.logger.info(
            f"Batch idle: {stats.completed}/{stats.total_submitted} completed, "
            f"{stats.failed} failed in {stats.total_time:.2f}s"
        )
        return stats

    def _admit(self) -> List[QueueItem]:
        """Move up to ``limit - processing`` queued items to PROCESSING."""
        with self._lock:
            slots = max(0, self._limit - self._processing)
            batch = [self._items[item_id] for item_id in self._pending.take(slots)]
            now = datetime.now()
            for item in batch:
                item.status = ItemStatus.PROCESSING
                item.started_at = now
            self._processing += len(batch)
            self._peak_processing = max(self._peak_processing, self._processing)
        return batch

    def _pending_count(self) -> int:
        with self._lock:
            return self._pending.size()

    def _start(self, item: QueueItem) -> Future:
        """Hand one pipeline to the pool."""
        return self.executor.submit(self.engine.analyze, item.payload)

    async def _process(self, item: QueueItem, future: Future) -> None:
        """Await one pipeline; a failure only affects this item."""
        log = create_logger_with_context("batch_processor", {"item_id": str(item.id)})
        log.debug("Analysis started")

        try:
            # Shielded so a cancelled drain leaves the pipeline running
            verdict = await asyncio.shield(asyncio.wrap_future(future))
        except Exception as e:
            outcome = self._finish(item, error=e)
            log.error(f"Failed to process {item.id}: {e}")
        else:
            outcome = self._finish(item, verdict=verdict)
            log.debug(f"Successfully processed: {item.id}")

        if outcome is not None:
            self._publish(outcome)

    def _settle_when_done(
        self,
        item: QueueItem,
        future: Future,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        """Finish an item from the pool once its orphaned pipeline returns."""
        def settle(done: Future) -> None:
            try:
                verdict = done.result()
            except Exception as e:
                outcome = self._finish(item, error=e)
            else:
                outcome = self._finish(item, verdict=verdict)
            if outcome is None:
                return
            try:
                loop.call_soon_threadsafe(self._publish, outcome)
            except RuntimeError:
                # Event loop already closed; the result stays available via get()
                self.logger.debug(f"Settled {item.id} after its event loop closed")

        future.add_done_callback(settle)

    def _finish(
        self,
        item: QueueItem,
        verdict: Optional[Verdict] = None,
        error: Optional[Exception] = None,
    ) -> Optional[BatchOutcome]:
        """Record a result; None when the item was already settled."""
        with self._lock:
            if item.status is not ItemStatus.PROCESSING:
                return None
            item.finished_at = datetime.now()
            if error is None:
                item.status = ItemStatus.DONE
                item.verdict = verdict
                self._completed += 1
                if verdict is not None:
                    self._scores.append(verdict.quality_score)
            else:
                item.status = ItemStatus.FAILED
                item.error = error
                self._failed += 1
            self._processing -= 1
        return BatchOutcome(id=item.id, verdict=verdict, error=error)

    def subscribe(self, listener: Listener) -> Listener:
        """Register a callback invoked with every outcome."""
        with self._lock:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a previously registered callback."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _publish(self, outcome: BatchOutcome) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(outcome)
            except Exception as e:
                self.logger.error(f"Outcome listener failed for {outcome.id}: {e}")

    def clear_pending(self) -> int:
        """
        Drop queued items that have not started.

        Items already processing finish normally.

        Returns:
            Number of items dropped
        """
        with self._lock:
            dropped = self._pending.clear()
            for item_id in dropped:
                del self._items[item_id]
            self._dropped += len(dropped)
        return len(dropped)

    def get(self, item_id: Hashable) -> Optional[QueueItem]:
        """Look up an item by id."""
        with self._lock:
            return self._items.get(item_id)

    def status(self, item_id: Hashable) -> Optional[ItemStatus]:
        """Current status of an item, or None if unknown."""
        item = self.get(item_id)
        return item.status if item else None

    def items(self) -> List[QueueItem]:
        """All known items, in submission order."""
        with self._lock:
            return list(self._items.values())

    def evict(self, item_id: Hashable) -> bool:
        """
        Forget an item that is queued or finished.

        Returns:
            True if the item was removed, False if it was unknown

        Raises:
            ValueError: If the item is still processing
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if item.status is ItemStatus.PROCESSING:
                raise ValueError(f"Cannot evict item {item_id!r} while it is processing")
            if item.status is ItemStatus.QUEUED:
                self._pending.remove(item_id)
                self._dropped += 1
            del self._items[item_id]
        return True

    def stats(self) -> BatchStats:
        """Aggregate counts and score statistics."""
        with self._lock:
            scores = list(self._scores)
            return BatchStats(
                total_submitted=self._submitted,
                completed=self._completed,
                failed=self._failed,
                dropped=self._dropped,
                pending=self._pending.size(),
                processing=self._processing,
                peak_processing=self._peak_processing,
                best_score=max(scores) if scores else None,
                worst_score=min(scores) if scores else None,
                average_score=sum(scores) / len(scores) if scores else None,
                total_time=self._busy_time,
            )

    def _to_queue_item(self, entry: Submission) -> QueueItem:
        if isinstance(entry, QueueItem):
            if entry.status is not ItemStatus.QUEUED:
                raise ValueError(f"Item {entry.id!r} is not in the queued state")
            return entry
        item_id, payload = entry
        return QueueItem(id=item_id, payload=payload)

    def shutdown(self) -> None:
        """Shutdown the thread pool gracefully."""
        self.logger.info("Shutting down batch scheduler")
        if self._owns_executor:
            self.executor.shutdown(wait=True)

    def __enter__(self) -> "BatchScheduler":
        """Context manager support."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Cleanup on context exit."""
        self.shutdown()


def create_batch_scheduler(
    engine: QualityAnalysisEngine,
    config: Optional[Dict] = None,
) -> BatchScheduler:
    """
    Factory function to create a BatchScheduler from the ``batch`` config section.

    Raises:
        ConfigurationError: Unknown or invalid batch options
    """
    batch_config = BatchConfig.from_dict((config or {}).get('batch'))
    return BatchScheduler(
        engine,
        concurrency_limit=batch_config.concurrency_limit,
        max_workers=batch_config.max_workers,
    )
