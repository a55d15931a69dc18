"""Background command queue.

``submit`` records a job and returns immediately; a worker task then parses,
validates, executes and notifies on its own. Callers poll the job for the
outcome.
"""

from __future__ import annotations

import asyncio
import enum
import uuid
from collections import OrderedDict
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from mentionbot.core.service import CommandService
from mentionbot.logging import get_logger
from mentionbot.monitoring.metrics import MetricsCollector


class JobStatus(str, enum.Enum):
    """Command job lifecycle status."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class CommandJob(BaseModel):
    """Acknowledgement and progress of a submitted command.

    Attributes:
        id: Job identifier (UUID).
        bot_id: Addressed bot.
        text: Command text.
        source_message_id: Originating mention, if any.
        status: Current job status.
        trade_id: Trade created by the command, once known.
        trade_status: Terminal status of that trade.
        error: Rejection reason or processing failure.
        created_at: Submission timestamp.
        finished_at: Completion timestamp.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    bot_id: int
    text: str
    source_message_id: str | None = None
    status: JobStatus = JobStatus.QUEUED
    trade_id: str | None = None
    trade_status: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None


class CommandQueue:
    """Runs submitted commands on a background worker task.

    Args:
        service: Service executing the commands.
        max_jobs: Number of jobs remembered for status lookups. Queued and
            running jobs are never forgotten, so the limit can be exceeded
            while a backlog drains.
        metrics: Prometheus collector, if configured.
    """

    def __init__(
        self,
        service: CommandService,
        max_jobs: int = 1000,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._service = service
        self._max_jobs = max_jobs
        self._metrics = metrics
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._jobs: OrderedDict[str, CommandJob] = OrderedDict()
        self._task: asyncio.Task | None = None
        self._running = False
        self._logger = get_logger("command_queue")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Number of jobs waiting for the worker."""
        return self._queue.qsize()

    def submit(
        self, bot_id: int, text: str, source_message_id: str | None = None
    ) -> CommandJob:
        """Queue a command and return its acknowledgement.

        Raises:
            BotNotFoundError: If the bot is not configured.
        """
        self._service.require_bot(bot_id)
        job = CommandJob(bot_id=bot_id, text=text, source_message_id=source_message_id)
        self._jobs[job.id] = job
        self._evict_finished()
        self._queue.put_nowait(job.id)
        self._update_depth()
        self._logger.info("command_queued", job_id=job.id, bot_id=bot_id)
        return job

    def get(self, job_id: str) -> CommandJob | None:
        return self._jobs.get(job_id)

    async def start(self) -> None:
        """Start the worker task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the worker task. Jobs still queued are left unprocessed."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    async def _run_loop(self) -> None:
        while self._running:
            job_id = await self._queue.get()
            try:
                await self.run_job(job_id)
            finally:
                self._queue.task_done()
                self._update_depth()

    async def run_job(self, job_id: str) -> CommandJob | None:
        """Process one job now. Returns None for an unknown job id."""
        job = self._jobs.get(job_id)
        if job is None:
            return None

        job.status = JobStatus.RUNNING
        try:
            outcome = await self._service.process_single_command(
                job.bot_id, job.text, job.source_message_id
            )
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            self._logger.exception("command_job_failed", job_id=job.id, bot_id=job.bot_id)
        else:
            job.status = JobStatus.DONE if outcome.accepted else JobStatus.FAILED
            job.error = outcome.error
            if outcome.trade is not None:
                job.trade_id = outcome.trade.id
                job.trade_status = outcome.trade.status.value
                job.error = outcome.trade.error_message
        job.finished_at = datetime.now(UTC)
        self._evict_finished()
        return job

    def _evict_finished(self) -> None:
        """Forget the oldest finished jobs beyond ``max_jobs``. Unfinished jobs are kept."""
        excess = len(self._jobs) - self._max_jobs
        if excess <= 0:
            return
        finished = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status in (JobStatus.DONE, JobStatus.FAILED)
        ]
        for job_id in finished[:excess]:
            del self._jobs[job_id]

    def _update_depth(self) -> None:
        if self._metrics is not None:
            self._metrics.queue_depth.set(self._queue.qsize())
