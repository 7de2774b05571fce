from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from errors import DeadlineExceededError

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    item: Any
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(
    fn: Callable[[Any], T],
    items: Iterable[Any],
    max_workers: int = 8,
    timeout: float | None = None,
) -> list[Outcome[T]]:
    """
    Run ``fn`` over ``items`` on a bounded thread pool.

    Outcomes come back in input order. A branch that raises is recorded on its
    outcome; a branch still running when ``timeout`` expires is cancelled and
    recorded as DeadlineExceededError.
    """
    items = list(items)
    outcomes: list[Outcome[T]] = [Outcome(item=item) for item in items]
    if not items:
        return outcomes

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items))), thread_name_prefix="fanout")
    try:
        futures = {executor.submit(fn, item): idx for idx, item in enumerate(items)}
        done, not_done = wait(futures, timeout=timeout)
        for future in done:
            idx = futures[future]
            try:
                outcomes[idx].value = future.result()
            except Exception as exc:  # noqa: BLE001
                outcomes[idx].error = exc
        for future in not_done:
            future.cancel()
            outcomes[futures[future]].error = DeadlineExceededError()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return outcomes
