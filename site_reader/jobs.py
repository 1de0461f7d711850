# site_reader/jobs.py
"""
In-process queue of crawl jobs.

Jobs are processed by a fixed pool of asyncio workers. A failed job is
retried with exponential backoff until its attempts run out; finished jobs
are kept for a while so their state can be inspected, then purged.
Results are delivered as plain values through :meth:`JobQueue.wait_until_finished`.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from site_reader.config import CrawlerConfig, ServerConfig
from site_reader.crawler.browser import BrowserLauncher, launch_chromium
from site_reader.engine import scrape
from site_reader.exceptions import InvalidInputError, JobTimeoutError, QueueFullError
from site_reader.limiter import LaunchLimiter

__all__ = ("JobState", "ScrapeJob", "JobQueue", "JobProcessor", "make_scrape_processor")

_log = logging.getLogger("SiteReader")


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(eq=False)
class ScrapeJob:
    """A queued crawl request and its outcome."""

    id: str
    url: str
    max_pages: int
    max_length: Optional[int] = None
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float = 0.0
    finished_at: Optional[float] = None
    exception: Optional[Exception] = field(default=None, repr=False)
    _done: Optional[asyncio.Future] = field(default=None, repr=False)
    _task: Optional[asyncio.Task] = field(default=None, repr=False)
    _cancel_requested: bool = field(default=False, repr=False)

    @property
    def finished(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    def data(self) -> Dict[str, Any]:
        return {"url": self.url, "maxPages": self.max_pages, "maxLength": self.max_length}


JobProcessor = Callable[[ScrapeJob], Awaitable[Dict[str, Any]]]


def _new_job_id() -> str:
    return f"scrape-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class JobQueue:
    """Bounded queue with retries, backoff and retention of finished jobs."""

    def __init__(
        self,
        processor: JobProcessor,
        *,
        concurrency: int = 15,
        max_waiting: int = 100,
        attempts: int = 3,
        backoff_delay: float = 2.0,
        keep_completed_for: float = 3600.0,
        keep_completed_count: int = 1000,
        keep_failed_for: float = 86400.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if concurrency < 1 or attempts < 1:
            raise ValueError("concurrency and attempts must be >= 1")
        self._processor = processor
        self.concurrency = concurrency
        self.max_waiting = max_waiting
        self.attempts = attempts
        self.backoff_delay = backoff_delay
        self.keep_completed_for = keep_completed_for
        self.keep_completed_count = keep_completed_count
        self.keep_failed_for = keep_failed_for
        self._clock = clock

        self._jobs: Dict[str, ScrapeJob] = {}
        self._pending: Optional[asyncio.Queue[ScrapeJob]] = None
        self._workers: List[asyncio.Task] = []
        self._timers: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, processor: JobProcessor, config: ServerConfig) -> JobQueue:
        return cls(
            processor,
            concurrency=config.worker_concurrency,
            max_waiting=config.max_waiting_jobs,
            attempts=config.job_attempts,
            backoff_delay=config.backoff_delay,
            keep_completed_for=config.keep_completed_for,
            keep_completed_count=config.keep_completed_count,
            keep_failed_for=config.keep_failed_for,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        self._pending = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"scrape-worker-{n}")
            for n in range(self.concurrency)
        ]
        _log.info("Scrape queue started with %d workers", self.concurrency)

    async def close(self) -> None:
        """Stop workers; unfinished jobs are marked failed."""
        tasks = [*self._workers, *self._timers]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._timers.clear()
        for job in self._jobs.values():
            if not job.finished:
                self._fail(job, RuntimeError("scrape queue closed"))
        self._pending = None

    async def __aenter__(self) -> JobQueue:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def add(self, url: str, max_pages: int, max_length: Optional[int] = None) -> ScrapeJob:
        """Enqueue a crawl; raises QueueFullError when too many jobs wait."""
        if self._pending is None:
            raise RuntimeError("JobQueue is not started")
        self.purge()
        backlog = self._count(JobState.WAITING) + self._count(JobState.DELAYED)
        if backlog >= self.max_waiting:
            raise QueueFullError(self.max_waiting)
        job = ScrapeJob(
            id=_new_job_id(),
            url=url,
            max_pages=max_pages,
            max_length=max_length,
            created_at=self._clock(),
            _done=asyncio.get_running_loop().create_future(),
        )
        self._jobs[job.id] = job
        self._pending.put_nowait(job)
        _log.info("Queued job %s for %s", job.id, url)
        return job

    def get(self, job_id: str) -> Optional[ScrapeJob]:
        return self._jobs.get(job_id)

    async def wait_until_finished(
        self, job: ScrapeJob, timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Return the job's result, or raise the error of its last attempt."""
        if job._done is None:
            raise RuntimeError(f"job {job.id} was not created by this queue")
        try:
            await asyncio.wait_for(asyncio.shield(job._done), timeout)
        except asyncio.TimeoutError:
            raise JobTimeoutError(job.id, timeout or 0.0) from None
        if job.state is JobState.COMPLETED:
            return job.result or {}
        if job.exception is not None:
            raise job.exception
        raise RuntimeError(job.error or f"job {job.id} failed")

    def cancel(self, job: ScrapeJob) -> bool:
        """Abandon *job*: stop its crawl if running and skip remaining attempts."""
        if job.finished:
            return False
        job._cancel_requested = True
        if job._task is not None and not job._task.done():
            job._task.cancel()
        elif job.state is not JobState.ACTIVE:
            self._fail(job, RuntimeError("job cancelled"))
        return True

    def counts(self) -> Dict[str, int]:
        self.purge()
        return {state.value: self._count(state) for state in JobState}

    def purge(self, now: Optional[float] = None) -> int:
        """Drop finished jobs past their retention; return how many went."""
        now = self._clock() if now is None else now
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.finished_at is not None
            and (
                (job.state is JobState.COMPLETED and now - job.finished_at > self.keep_completed_for)
                or (job.state is JobState.FAILED and now - job.finished_at > self.keep_failed_for)
            )
        ]
        completed = [j for j in self._jobs.values() if j.state is JobState.COMPLETED and j.id not in expired]
        overflow = len(completed) - self.keep_completed_count
        if overflow > 0:
            completed.sort(key=lambda j: j.finished_at or 0.0)
            expired.extend(j.id for j in completed[:overflow])
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)

    # ------------------------------------------------------------------ #
    # Workers                                                            #
    # ------------------------------------------------------------------ #

    def _count(self, state: JobState) -> int:
        return sum(1 for j in self._jobs.values() if j.state is state)

    async def _worker(self, n: int) -> None:
        pending = self._pending
        if pending is None:
            raise RuntimeError("JobQueue is not started")
        while True:
            job = await pending.get()
            try:
                if not job.finished:
                    await self._run_attempt(job)
            finally:
                pending.task_done()

    async def _run_attempt(self, job: ScrapeJob) -> None:
        job.state = JobState.ACTIVE
        job.attempts_made += 1
        _log.info("Processing job %s for URL: %s (attempt %d)", job.id, job.url, job.attempts_made)
        job._task = asyncio.create_task(self._processor(job))
        try:
            result = await job._task
        except asyncio.CancelledError:
            if job._cancel_requested and job._task.cancelled():
                self._fail(job, RuntimeError("job cancelled"))
                return
            raise
        except Exception as exc:
            self._handle_failure(job, exc)
            return
        finally:
            job._task = None

        job.state = JobState.COMPLETED
        job.result = result
        job.finished_at = self._clock()
        self._resolve(job)
        _log.info("Job %s completed successfully", job.id)

    def _handle_failure(self, job: ScrapeJob, exc: Exception) -> None:
        job.error = str(exc)
        retryable = not isinstance(exc, InvalidInputError)
        if retryable and job.attempts_made < self.attempts and not job._cancel_requested:
            delay = self.backoff_delay * 2 ** (job.attempts_made - 1)
            job.state = JobState.DELAYED
            _log.warning(
                "Job %s failed (attempt %d/%d): %s; retrying in %.1f s",
                job.id, job.attempts_made, self.attempts, exc, delay,
            )
            timer = asyncio.create_task(self._retry_later(job, delay))
            self._timers.add(timer)
            timer.add_done_callback(self._timers.discard)
            return
        self._fail(job, exc)

    async def _retry_later(self, job: ScrapeJob, delay: float) -> None:
        await asyncio.sleep(delay)
        if job.finished or self._pending is None:
            return
        job.state = JobState.WAITING
        self._pending.put_nowait(job)

    def _fail(self, job: ScrapeJob, exc: Exception) -> None:
        job.state = JobState.FAILED
        job.error = str(exc) or type(exc).__name__
        job.exception = exc
        job.finished_at = self._clock()
        self._resolve(job)
        _log.error("Job %s failed: %s", job.id, job.error)

    @staticmethod
    def _resolve(job: ScrapeJob) -> None:
        if job._done is not None and not job._done.done():
            job._done.set_result(None)


def make_scrape_processor(
    config: CrawlerConfig,
    limiter: LaunchLimiter,
    launcher: BrowserLauncher = launch_chromium,
) -> JobProcessor:
    """Job processor running one crawl per job with shared settings and limiter."""

    async def process(job: ScrapeJob) -> Dict[str, Any]:
        result = await scrape(
            job.url,
            job.max_pages,
            job.max_length,
            config=config,
            limiter=limiter,
            launcher=launcher,
        )
        _log.info("Completed job %s - scraped %d pages", job.id, result.pages_scraped)
        return result.to_dict()

    return process
