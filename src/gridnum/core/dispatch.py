from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Runs best-effort work (notifications, stats refresh) after a commit.

    Failures are logged and dropped; committed game state is never touched.
    """

    def __init__(self, inline: bool = False) -> None:
        self._executor = None if inline else ThreadPoolExecutor(max_workers=1, thread_name_prefix="gridnum-side-effects")

    def submit(self, name: str, fn: Callable[..., Any], *args: Any) -> Future[None] | None:
        if self._executor is None:
            self._run(name, fn, args)
            return None
        return self._executor.submit(self._run, name, fn, args)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    @staticmethod
    def _run(name: str, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("side effect %s failed", name)
