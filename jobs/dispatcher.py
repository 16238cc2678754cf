"""
Throttled batch sending.

Items are split into fixed-size sub-batches. Sends inside a sub-batch run
concurrently; sub-batches run strictly one after another with a pause in
between so the transport's own rate limits are respected. Every send
result is captured individually: a failure, exception or timeout only
marks that one item as failed.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

SEND_TIMEOUT_ERROR = "send timed out"


@dataclass
class SendResult:
    item: Any
    ok: bool
    error: Optional[str] = None


def _safe_send(send_one: Callable, item):
    try:
        outcome = send_one(item)
    except Exception as exc:
        return False, str(exc) or exc.__class__.__name__
    if isinstance(outcome, tuple):
        ok, error = outcome
        return bool(ok), error
    return bool(outcome), None


def send_sub_batch(items, send_one: Callable, timeout_seconds: float) -> List[SendResult]:
    if not items:
        return []

    executor = ThreadPoolExecutor(max_workers=len(items), thread_name_prefix="notify-send")
    try:
        futures = [executor.submit(_safe_send, send_one, item) for item in items]
        done, _not_done = wait(futures, timeout=timeout_seconds)

        results = []
        for item, future in zip(items, futures):
            if future in done:
                ok, error = future.result()
                results.append(SendResult(item=item, ok=ok, error=error))
            else:
                results.append(SendResult(item=item, ok=False, error=SEND_TIMEOUT_ERROR))
        return results
    finally:
        # hung sends keep their worker thread; the batch does not wait for them
        executor.shutdown(wait=False, cancel_futures=True)


def send_in_batches(
    items,
    send_one: Callable,
    *,
    sub_batch_size: int = 5,
    delay_seconds: float = 1.0,
    timeout_seconds: float = 30.0,
    on_result: Optional[Callable[[SendResult], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[SendResult]:
    """
    Send every item, sub_batch_size at a time.

    on_result is called from the calling thread, in item order, once each
    sub-batch has settled. Use it for bookkeeping that needs the caller's
    database session (worker threads never touch it).
    """
    items = list(items)
    size = max(1, int(sub_batch_size))
    results: List[SendResult] = []

    for start in range(0, len(items), size):
        batch = items[start:start + size]
        for result in send_sub_batch(batch, send_one, timeout_seconds):
            if not result.ok:
                logger.warning("Send failed for %r: %s", result.item, result.error)
            if on_result is not None:
                on_result(result)
            results.append(result)

        if start + size < len(items) and delay_seconds > 0:
            sleep(delay_seconds)

    return results
