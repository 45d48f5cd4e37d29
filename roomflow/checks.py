"""Cancellable background probes such as device network and log checks."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from .constants import DEFAULT_CHECK_ATTEMPTS, DEFAULT_CHECK_BACKOFF_BASE
from .errors import WorkflowError
from .utils.retry import Sleeper, schedule_retry

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]
ResultCallback = Callable[["CheckResult"], Union[Awaitable[Any], Any]]


class CheckResult(BaseModel):
    """Outcome of a finished background check."""

    name: str
    passed: bool
    attempts: int
    error: Optional[str] = None
    recorded: bool = False
    record_error: Optional[str] = None


class BackgroundCheck:
    """Run ``probe`` until it passes or ``attempts`` run out, then report.

    The callback fires exactly once with the outcome, unless the check is
    cancelled first; a cancelled check never reports. A ``WorkflowError``
    from the callback leaves the result with ``recorded=False``.
    """

    def __init__(
        self,
        name: str,
        probe: Probe,
        on_result: ResultCallback,
        attempts: int = DEFAULT_CHECK_ATTEMPTS,
        backoff_base: float = DEFAULT_CHECK_BACKOFF_BASE,
        jitter: float = 0.5,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.name = name
        self._probe = probe
        self._on_result = on_result
        self._attempts = attempts
        self._backoff_base = backoff_base
        self._jitter = jitter
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self.result: Optional[CheckResult] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> asyncio.Task:
        """Schedule the check on the running event loop."""
        if self._task is not None:
            raise RuntimeError(f"check {self.name} already started")
        self._task = asyncio.create_task(self._run(), name=f"check:{self.name}")
        return self._task

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"Cancelled check {self.name}")

    async def wait(self) -> Optional[CheckResult]:
        """Wait for the check to finish; ``None`` when it was cancelled."""
        if self._task is None:
            return None
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
        return self.result

    async def _run(self) -> None:
        passed = False
        error: Optional[str] = None
        attempt = 0
        for attempt in range(1, self._attempts + 1):
            try:
                passed = bool(await self._probe())
                error = None
            except Exception as exc:
                passed = False
                error = str(exc)
                logger.warning(f"Check {self.name} attempt {attempt} failed: {exc}")
            if passed or attempt == self._attempts:
                break
            await schedule_retry(attempt - 1, base=self._backoff_base, jitter=self._jitter, sleep=self._sleep)

        if self._cancelled:
            return
        self.result = CheckResult(name=self.name, passed=passed, attempts=attempt, error=error)
        logger.info(f"Check {self.name} {'passed' if passed else 'failed'} after {attempt} attempt(s)")
        try:
            outcome = self._on_result(self.result)
            if inspect.isawaitable(outcome):
                await outcome
        except WorkflowError as exc:
            self.result.record_error = f"{exc.code}: {exc.message}"
            logger.warning(f"Check {self.name} result not recorded: {self.result.record_error}")
            return
        self.result.recorded = True
