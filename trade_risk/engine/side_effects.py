"""Best-effort dispatch of post-commit side effects.

Audit writes and cache invalidation run after the trade transaction has
committed. Each task is isolated: an exception is logged and dropped, and
never reaches the caller of :meth:`SideEffectDispatcher.submit`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from trade_risk.core.utils.logging_config import get_logger

logger = get_logger(__name__)


class SideEffectDispatcher:
    """Runs fire-and-forget callables on a small thread pool.

    Args:
        max_workers: Pool size. Zero or less runs tasks inline.
        synchronous: Run tasks inline on the submitting thread (still with
            failures swallowed). Used by scripts and tests that need the
            effects visible on return.
    """

    def __init__(self, max_workers: int = 4, synchronous: bool = False) -> None:
        self._synchronous = synchronous or max_workers <= 0
        self._executor: ThreadPoolExecutor | None = None
        if not self._synchronous:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="side-effect"
            )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self.failures = 0

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Schedule *fn*; never raises because of *fn*."""
        if self._executor is None:
            self._run(name, fn, args, kwargs)
            return
        try:
            future = self._executor.submit(self._run, name, fn, args, kwargs)
        except RuntimeError as exc:
            # Pool already shut down
            logger.warning("side_effect_rejected", side_effect=name, error=str(exc))
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def drain(self, timeout: float | None = None) -> None:
        """Block until every task submitted so far has finished."""
        with self._lock:
            pending = set(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait_for_pending)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, name: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        try:
            fn(*args, **kwargs)
            logger.debug("side_effect_done", side_effect=name)
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                self.failures += 1
            logger.warning(
                "side_effect_failed",
                side_effect=name,
                error=str(exc),
                exc_info=True,
            )
