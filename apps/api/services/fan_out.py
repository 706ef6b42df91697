"""
Bounded per-member fan-out.

Runs one independent computation per item on a thread pool and waits for
all of them before returning. A failing item is recorded next to its input
instead of cancelling its siblings. Results keep input order so callers can
sort deterministically afterwards.

Only Exception subclasses are isolated; KeyboardInterrupt / SystemExit
still abort the batch, and pending work is cancelled so no partial result
escapes as if it were complete.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    item: T
    result: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_isolated(worker: Callable[[T], R], item: T) -> TaskOutcome:
    try:
        return TaskOutcome(item=item, result=worker(item))
    except Exception as e:
        return TaskOutcome(item=item, error=e)


def fan_out(
    items: Sequence[T],
    worker: Callable[[T], R],
    max_workers: int,
) -> List[TaskOutcome]:
    """
    Apply `worker` to every item with at most `max_workers` in flight.

    Returns one TaskOutcome per item, in input order.
    """
    if not items:
        return []

    if max_workers <= 1 or len(items) == 1:
        return [_run_isolated(worker, item) for item in items]

    pool = ThreadPoolExecutor(max_workers=min(max_workers, len(items)))
    try:
        futures = [pool.submit(_run_isolated, worker, item) for item in items]
        outcomes = [future.result() for future in futures]
    except BaseException:
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    pool.shutdown(wait=True)
    return outcomes
