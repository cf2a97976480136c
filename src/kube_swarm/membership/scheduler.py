"""Scheduler: drive the reconciler on a fixed cadence.

The first tick fires after ``initial_delay`` (zero by default). Each
following tick starts ``interval`` seconds after the previous one finished;
ticks never overlap.
"""

from __future__ import annotations

import asyncio
import logging

from kube_swarm.membership.reconciler import Reconciler, TickReport

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs ``Reconciler.tick`` in a single background task."""

    def __init__(
        self,
        reconciler: Reconciler,
        interval: float = 5.0,
        initial_delay: float = 0.0,
    ) -> None:
        self.reconciler = reconciler
        self.interval = interval
        self.initial_delay = initial_delay
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> TickReport:
        """Run a single reconciliation tick."""
        return await self.reconciler.tick()

    async def _loop(self) -> None:
        if self.initial_delay > 0:
            await asyncio.sleep(self.initial_delay)
        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Reconciliation tick failed")
            await asyncio.sleep(self.interval)
