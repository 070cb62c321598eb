import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedWorkerPool(Generic[T, R]):
    """
    Fixed number of asyncio workers draining a shared queue.

    Each worker pulls the next item as soon as it finishes the previous one,
    so a slow item never holds back the rest. Workers do not touch shared
    state: every result goes back to the coordinator, either through the
    ``on_result`` callback (called synchronously, between awaits) or in the
    list ``run`` returns. An exception raised for one item is logged and the
    worker moves on.
    """

    def __init__(self, width: int, name: str = "pool"):
        if width < 1:
            raise ValueError("width must be at least 1.")
        self.width = width
        self.name = name

    async def run(
        self,
        items: Iterable[T],
        handler: Callable[[T], Awaitable[R]],
        on_result: Optional[Callable[[T, R], None]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[Tuple[T, R]]:
        queue: asyncio.Queue = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        results: List[Tuple[T, R]] = []
        worker_count = min(self.width, queue.qsize())

        async def worker(worker_id: int) -> None:
            while not (should_stop and should_stop()):
                try:
                    item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                try:
                    result = await handler(item)
                except Exception as e:
                    logger.warning(f"[{self.name}-{worker_id}] Item {item!r} failed: {e}")
                    continue
                results.append((item, result))
                if on_result is not None:
                    on_result(item, result)

        await asyncio.gather(*(worker(i) for i in range(worker_count)))
        return results
