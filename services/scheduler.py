"""Owner of the periodic background jobs (cleanup, monitoring, backups)"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Job:
    name: str
    interval: float
    func: Callable
    runs: int = 0
    failures: int = 0


class Scheduler:
    """
    Runs each registered job every `interval` seconds on the event loop.

    start() and stop() are called from the FastAPI startup and shutdown
    events; nothing runs until start().
    """

    def __init__(self):
        self.jobs: List[Job] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def add_job(self, name: str, interval: float, func: Callable) -> Job:
        job = Job(name=name, interval=interval, func=func)
        self.jobs.append(job)
        return job

    async def run_job(self, job: Job):
        """Run one job once; failures are logged and counted"""
        try:
            result = job.func()
            if inspect.isawaitable(result):
                await result
            job.runs += 1
        except Exception as e:
            job.failures += 1
            logger.error(f"Error in scheduled job {job.name}: {e}", exc_info=True)

    async def _loop(self, job: Job):
        while True:
            await asyncio.sleep(job.interval)
            await self.run_job(job)

    def start(self):
        if self.running:
            return
        self._tasks = [asyncio.create_task(self._loop(job), name=f"job:{job.name}") for job in self.jobs]
        for job in self.jobs:
            logger.info(f"✅ Background job started: {job.name} (every {job.interval:.0f}s)")

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Background jobs stopped")

    def get(self, name: str) -> Optional[Job]:
        for job in self.jobs:
            if job.name == name:
                return job
        return None
