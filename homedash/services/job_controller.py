"""Supervisor for the external acquisition process.

The controller owns a single job slot. ``start`` validates the target and,
under one asyncio lock, checks the slot, marks a new job running, publishes
``Started`` and schedules a supervision task. The supervision task launches
the tool, relays every stdout/stderr line to the event bus and publishes
exactly one terminal event (``Finished`` or ``SpawnError``) before the slot is
released, so a subsequent job's ``Started`` is always published after it.
"""

import asyncio
import contextlib
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import List, Optional, Sequence

import structlog

from homedash.core.metrics import MetricsCollector
from homedash.core.validation import TargetValidator, target_validator
from homedash.models.job import (
    Finished,
    Job,
    JobEvent,
    JobState,
    LogLine,
    LogStream,
    SpawnError,
    Started,
)
from homedash.services.event_bus import EventBus

logger = structlog.get_logger(__name__)

DEFAULT_COMMAND = ("spotdl",)

# Placeholders understood by the acquisition tool
OUTPUT_TEMPLATE_SUFFIX = "{artist}/{album}/{title}.{output-ext}"

READ_CHUNK_SIZE = 4096


class RejectReason(str, Enum):
    """Why a start request was refused."""

    INVALID_TARGET = "invalid_target"
    ALREADY_RUNNING = "already_running"
    UNCONFIGURED = "unconfigured"


@dataclass(frozen=True)
class StartResult:
    """Synchronous answer to a start request.

    Acceptance says nothing about the outcome of the job; that is only
    observable through the event bus.
    """

    accepted: bool
    message: str
    job: Optional[Job] = None
    reason: Optional[RejectReason] = None

    @classmethod
    def rejected(cls, reason: RejectReason, message: str) -> "StartResult":
        return cls(accepted=False, message=message, reason=reason)


class JobController:
    """Owns the lifecycle of at most one acquisition process at a time."""

    def __init__(
        self,
        event_bus: EventBus,
        output_root: Optional[str],
        command: Optional[Sequence[str]] = None,
        timeout_seconds: Optional[float] = None,
        validator: Optional[TargetValidator] = None,
    ) -> None:
        """Initialize the job controller.

        Args:
            event_bus: Bus that receives every job event.
            output_root: Directory acquired media is written under. Start
                requests are rejected while it is unset.
            command: Executable and leading arguments of the acquisition tool.
            timeout_seconds: Kill the process after this long. None disables.
            validator: Target validator (the shared one if None).
        """
        self.event_bus = event_bus
        self.output_root = output_root
        self.command: List[str] = list(command or DEFAULT_COMMAND)
        self.timeout_seconds = timeout_seconds
        self.validator = validator or target_validator

        self._lock = asyncio.Lock()
        self._job: Optional[Job] = None
        self._task: Optional[asyncio.Task] = None

        logger.debug(
            "job_controller_initialized",
            command=self.command,
            output_root=output_root,
            timeout_seconds=timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, target: Optional[str]) -> StartResult:
        """Request a new acquisition job.

        Args:
            target: Catalog URL to acquire.

        Returns:
            StartResult, accepted or rejected with a reason.
        """
        validation = self.validator.validate(target)
        if not validation.is_valid:
            MetricsCollector.record_job_rejected(RejectReason.INVALID_TARGET.value)
            return StartResult.rejected(
                RejectReason.INVALID_TARGET,
                validation.error_message or "Invalid target",
            )

        if not self.output_root:
            logger.error("job_output_root_unset")
            MetricsCollector.record_job_rejected(RejectReason.UNCONFIGURED.value)
            return StartResult.rejected(
                RejectReason.UNCONFIGURED,
                "Server is not configured for downloads.",
            )

        clean_target = validation.sanitized_value or ""

        async with self._lock:
            if self._job is not None and self._job.state == JobState.RUNNING:
                logger.warning(
                    "job_start_rejected_already_running",
                    running_job_id=self._job.job_id,
                )
                MetricsCollector.record_job_rejected(RejectReason.ALREADY_RUNNING.value)
                return StartResult.rejected(
                    RejectReason.ALREADY_RUNNING,
                    "A download is already in progress.",
                )

            job = Job(job_id=str(uuid.uuid4()), target=clean_target)
            self._job = job

            self._publish(Started(target=clean_target))
            MetricsCollector.record_job_started()
            self._task = asyncio.create_task(self._supervise(job))

        logger.info("job_started", job_id=job.job_id, target=clean_target)

        return StartResult(accepted=True, message="Download process started.", job=job)

    def current(self) -> Optional[Job]:
        """The current (running or last finished) job, if any."""
        return self._job

    @property
    def state(self) -> JobState:
        if self._job is None:
            return JobState.IDLE
        return self._job.state

    def is_running(self) -> bool:
        return self.state == JobState.RUNNING

    def build_command(self, target: str) -> List[str]:
        """Build the acquisition tool invocation for a target."""
        output_root = PurePosixPath(self.output_root or "/")
        template = f"{output_root.as_posix().rstrip('/')}/{OUTPUT_TEMPLATE_SUFFIX}"
        return [*self.command, target, "--output", template]

    async def wait(self) -> Optional[Job]:
        """Wait for the current supervision task to finish."""
        task = self._task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(task)
        return self._job

    async def shutdown(self) -> None:
        """Cancel supervision and kill a running process (application shutdown)."""
        task = self._task
        if task is None or task.done():
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        logger.info("job_controller_stopped")

    # ------------------------------------------------------------------
    # Supervision
    # ------------------------------------------------------------------

    def _publish(self, event: JobEvent) -> None:
        self.event_bus.publish(event)

    async def _supervise(self, job: Job) -> None:
        """Run the process for ``job`` and relay its output until it exits."""
        cmd = self.build_command(job.target)
        process: Optional[asyncio.subprocess.Process] = None

        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env={**os.environ, "PYTHONUNBUFFERED": "1"},
                )
            except OSError as e:
                # Executable missing, permission denied, ...
                message = e.strerror or str(e)
                logger.error(
                    "job_spawn_failed",
                    job_id=job.job_id,
                    executable=cmd[0],
                    error=message,
                )
                await self._finish(job, exit_code=None, spawn_error=message)
                return

            logger.info("job_process_spawned", job_id=job.job_id, pid=process.pid)

            exit_code = await self._run_to_completion(job, process)
            await self._finish(job, exit_code=exit_code)

        except asyncio.CancelledError:
            exit_code = await self._kill(process)
            await self._finish(job, exit_code=exit_code, error_message="Job cancelled")
            raise

        except Exception as e:
            logger.error(
                "job_supervision_error",
                job_id=job.job_id,
                error=str(e),
                exc_info=True,
            )
            if process is None:
                await self._finish(job, exit_code=None, spawn_error=str(e))
            else:
                exit_code = await self._kill(process)
                await self._finish(job, exit_code=exit_code, error_message=str(e))

    async def _run_to_completion(self, job: Job, process: asyncio.subprocess.Process) -> int:
        """Relay both output streams, then reap the process.

        Returns:
            The process exit code.
        """

        async def relay() -> int:
            assert process.stdout is not None and process.stderr is not None
            await asyncio.gather(
                self._pump(process.stdout, LogStream.STDOUT),
                self._pump(process.stderr, LogStream.STDERR),
            )
            return await process.wait()

        if self.timeout_seconds is None:
            return await relay()

        try:
            return await asyncio.wait_for(relay(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "job_timed_out",
                job_id=job.job_id,
                timeout_seconds=self.timeout_seconds,
            )
            self._publish(
                LogLine(
                    text=f"Process timed out after {self.timeout_seconds:g}s and was terminated",
                    stream=LogStream.STDERR,
                )
            )
            exit_code = await self._kill(process)
            return exit_code if exit_code is not None else -1

    async def _pump(self, reader: asyncio.StreamReader, stream: LogStream) -> None:
        """Publish every line read from ``reader``.

        Reads in chunks rather than with ``readline`` so an unterminated
        progress bar cannot exceed the stream buffer limit. Carriage returns
        end a line as well, since progress output redraws with them.
        """
        pending = ""
        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="replace")
            *lines, pending = pending.replace("\r\n", "\n").replace("\r", "\n").split("\n")
            for line in lines:
                self._publish_line(line, stream)

        self._publish_line(pending, stream)

    def _publish_line(self, line: str, stream: LogStream) -> None:
        if not line.strip():
            return
        self._publish(LogLine(text=line.rstrip(), stream=stream))

    async def _kill(self, process: Optional[asyncio.subprocess.Process]) -> Optional[int]:
        """Kill ``process`` if it is still alive and return its exit code."""
        if process is None:
            return None
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
        return await process.wait()

    async def _finish(
        self,
        job: Job,
        exit_code: Optional[int],
        spawn_error: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Publish the terminal event, then release the slot.

        Only the first call per job has any effect.
        """
        if job.finished_at is not None:
            return
        job.finished_at = datetime.now(timezone.utc)

        if spawn_error is not None:
            self._publish(SpawnError(message=spawn_error))
        else:
            self._publish(Finished(exit_code=exit_code))

        async with self._lock:
            job.exit_code = exit_code
            if spawn_error is None and error_message is None and exit_code == 0:
                job.state = JobState.SUCCEEDED
            else:
                job.state = JobState.FAILED
                job.error_message = spawn_error or error_message or f"Exited with code {exit_code}"

        MetricsCollector.record_job_finished(job.state.value, job.duration or 0.0)
        logger.info(
            "job_finished",
            job_id=job.job_id,
            state=job.state.value,
            exit_code=exit_code,
            duration=job.duration,
        )


# Global job controller instance
_job_controller: Optional[JobController] = None


def configure_job_controller(
    event_bus: EventBus,
    output_root: Optional[str],
    command: Optional[Sequence[str]] = None,
    timeout_seconds: Optional[float] = None,
) -> JobController:
    """Configure and initialize the global job controller."""
    global _job_controller
    _job_controller = JobController(
        event_bus=event_bus,
        output_root=output_root,
        command=command,
        timeout_seconds=timeout_seconds,
    )
    return _job_controller


def get_job_controller() -> JobController:
    """Get the global job controller instance.

    Raises:
        RuntimeError: If the job controller is not configured.
    """
    if _job_controller is None:
        raise RuntimeError(
            "Job controller not configured. Call configure_job_controller() first."
        )
    return _job_controller
