"""
Generation-tagged one-shot task scheduling.

Every deferred continuation (lockout release, next question, round end,
countdown steps and race timer ticks) goes through a scheduler. Tasks remember
the generation that was current when they were scheduled; starting a new
generation invalidates everything scheduled before it, so a late task can
never touch a session that has been ended or replaced.
"""
import asyncio
import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class DeferredTask:
    """A scheduled one-shot callback."""

    _ids = itertools.count(1)

    def __init__(self, name: str, generation: int, delay_ms: int, callback: Callable[[], Any]):
        self.task_id = next(self._ids)
        self.name = name
        self.generation = generation
        self.delay_ms = delay_ms
        self.callback = callback
        self.handle: Any = None
        self.fired = False
        self.cancelled = False

    def __repr__(self) -> str:
        return f"DeferredTask({self.name!r}, gen={self.generation}, delay={self.delay_ms}ms)"


class TaskScheduler:
    """
    Base scheduler: tracks pending tasks and discards stale ones.

    Subclasses only decide how a task is armed on a clock (``_arm``) and how
    an armed task is released (``_disarm``).
    """

    def __init__(self):
        self._generation = 0
        self._pending: Dict[int, DeferredTask] = {}

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_names(self):
        return [task.name for task in self._pending.values()]

    def new_generation(self) -> int:
        """Invalidate every pending task and return the new generation id."""
        self.cancel_all()
        self._generation += 1
        logger.debug(
            f"Scheduler generation advanced to {self._generation}",
            extra={
                'event_type': 'scheduler_generation',
                'generation': self._generation,
                'timestamp': time.time()
            }
        )
        return self._generation

    def schedule(self, delay_ms: int, callback: Callable[[], Any], name: str = "task") -> DeferredTask:
        """
        Schedule a one-shot callback tagged with the current generation.

        Args:
            delay_ms: Delay before the callback fires, in milliseconds
            callback: Zero-argument callable
            name: Label used in logs

        Returns:
            The scheduled DeferredTask
        """
        task = DeferredTask(name, self._generation, max(0, int(delay_ms)), callback)
        self._pending[task.task_id] = task
        task.handle = self._arm(task)
        return task

    def cancel(self, task: Optional[DeferredTask]) -> bool:
        """Cancel a single pending task. Returns False if it already ran or was cancelled."""
        if task is None or task.task_id not in self._pending:
            return False
        del self._pending[task.task_id]
        task.cancelled = True
        self._disarm(task)
        return True

    def cancel_all(self) -> int:
        """Cancel every pending task and return how many were dropped."""
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancelled = True
            self._disarm(task)
        if tasks:
            logger.debug(f"Cancelled {len(tasks)} pending tasks")
        return len(tasks)

    def _fire(self, task: DeferredTask) -> None:
        self._pending.pop(task.task_id, None)
        if task.cancelled:
            return

        task.fired = True
        if task.generation != self._generation:
            logger.debug(
                f"Discarding stale task {task.name} from generation {task.generation}",
                extra={
                    'event_type': 'stale_callback',
                    'task': task.name,
                    'task_generation': task.generation,
                    'generation': self._generation,
                    'timestamp': time.time()
                }
            )
            return

        try:
            task.callback()
        except Exception:
            # Continuation errors stop here, never in the event loop
            logger.exception(f"Deferred task {task.name} failed")

    def _arm(self, task: DeferredTask) -> Any:
        raise NotImplementedError

    def _disarm(self, task: DeferredTask) -> None:
        raise NotImplementedError


class AsyncioScheduler(TaskScheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__()
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _arm(self, task: DeferredTask) -> asyncio.TimerHandle:
        return self.loop.call_later(task.delay_ms / 1000, self._fire, task)

    def _disarm(self, task: DeferredTask) -> None:
        if task.handle is not None:
            task.handle.cancel()
