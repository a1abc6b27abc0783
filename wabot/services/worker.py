import asyncio
from collections import Counter
from typing import Callable, Optional

from wabot.logging_config import get_logger
from wabot.schemas.webhook import InboundEvent
from wabot.services.pipeline import PipelineOrchestrator, PipelineOutcome

logger = get_logger("pipeline_worker")


class PipelineWorker:
    """Bounded in-process queue between the webhook and the pipeline.

    The webhook only calls ``submit``; ``concurrency`` consumer tasks run the
    orchestrator. ``join`` waits until every submitted event has been processed.
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        concurrency: int = 4,
        queue_size: int = 100,
        on_outcome: Optional[Callable[[PipelineOutcome], None]] = None,
    ):
        self.orchestrator = orchestrator
        self.concurrency = max(concurrency, 1)
        self.queue_size = max(queue_size, 1)
        self.on_outcome = on_outcome
        self.stats: Counter = Counter()
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn consumer tasks on the running loop."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._consume(n), name=f"pipeline-worker-{n}") for n in range(self.concurrency)
        ]
        logger.info(
            "Pipeline worker started",
            extra={"context": {"concurrency": self.concurrency, "queue_size": self.queue_size}},
        )

    def submit(self, event: InboundEvent) -> bool:
        """Hand an event to the pipeline without waiting. False if it was dropped."""
        if self._queue is None or not self.running:
            logger.warning("Pipeline worker not running, event dropped", extra={"context": {"message_id": event.provider_message_id}})
            self.stats["rejected"] += 1
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Pipeline queue full, event dropped",
                extra={"context": {"message_id": event.provider_message_id, "queue_size": self.queue_size}},
            )
            self.stats["rejected"] += 1
            return False
        self.stats["submitted"] += 1
        return True

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Give queued events ``drain_timeout`` seconds to finish, then cancel consumers."""
        if self._queue is not None and self.running:
            try:
                await asyncio.wait_for(self.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                pass
            dropped = self._queue.qsize()
            if dropped:
                self.stats["dropped"] += dropped
                logger.warning(
                    "Pipeline worker stopping with queued events, dropped",
                    extra={"context": {"dropped": dropped}},
                )
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Pipeline worker stopped", extra={"context": dict(self.stats)})

    def snapshot(self) -> dict:
        return {
            "running": self.running,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            **self.stats,
        }

    async def _consume(self, worker_number: int) -> None:
        while True:
            try:
                event = await self._queue.get()
            except asyncio.CancelledError:
                break
            try:
                outcome = await self.orchestrator.process(event)
                self.stats[outcome.stage.value] += 1
                if self.on_outcome:
                    self.on_outcome(outcome)
            except Exception as exc:
                self.stats["crashed"] += 1
                logger.error(
                    "Pipeline task crashed",
                    extra={"context": {"worker": worker_number, "message_id": event.provider_message_id, "error": str(exc)}},
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
