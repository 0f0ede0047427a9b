import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from gateway.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class KeyedWorkQueue:
    """Background workers for fire-and-forget persistence jobs.

    Each key always lands on the same worker, so jobs for one device run in
    submission order while different devices proceed independently. A full
    queue drops the job; nothing upstream ever waits on it.
    """

    def __init__(
        self,
        worker_count: Optional[int] = None,
        max_size: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.worker_count = worker_count or self.settings.work_queue_worker_count
        self.max_size = max_size or self.settings.work_queue_max_size
        self.queues: list[asyncio.Queue] = []
        self.workers: list[asyncio.Task] = []
        self.running = False
        self.dropped = 0

    async def start(self):
        if self.running:
            return

        self.queues = [asyncio.Queue(maxsize=self.max_size) for _ in range(self.worker_count)]
        self.running = True

        for i, queue in enumerate(self.queues):
            worker = asyncio.create_task(self._worker(i, queue))
            self.workers.append(worker)

        logger.info(f"Work queue started with {self.worker_count} workers")

    async def stop(self):
        self.running = False

        for worker in self.workers:
            worker.cancel()

        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()

        logger.info("Work queue stopped")

    def submit(self, key: str, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> bool:
        if not self.running:
            logger.error(f"Work queue not running, dropping job {func.__name__} for {key}")
            self.dropped += 1
            return False

        queue = self.queues[hash(key) % self.worker_count]
        try:
            queue.put_nowait((key, func, args, kwargs))
        except asyncio.QueueFull:
            logger.error(f"Work queue full, dropping job {func.__name__} for {key}")
            self.dropped += 1
            return False

        return True

    async def join(self):
        await asyncio.gather(*(queue.join() for queue in self.queues))

    async def _worker(self, worker_id: int, queue: asyncio.Queue):
        logger.info(f"Work queue worker {worker_id} started")

        while self.running:
            key, func, args, kwargs = await queue.get()
            try:
                await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Worker {worker_id} job {func.__name__} for {key} failed: {e}", exc_info=True)
            finally:
                queue.task_done()

    def get_queue_size(self) -> int:
        return sum(queue.qsize() for queue in self.queues)


_work_queue: Optional[KeyedWorkQueue] = None


def get_work_queue() -> KeyedWorkQueue:
    global _work_queue

    if _work_queue is None:
        _work_queue = KeyedWorkQueue()

    return _work_queue
