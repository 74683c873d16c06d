"""Job data models for the acquisition job and its broadcast events.

Only one job exists at a time; the controller replaces the terminal job with a
new one on the next accepted start.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class JobState(str, Enum):
    """State of the acquisition job.

    State transitions:
    - IDLE -> RUNNING: When a valid start request is accepted
    - RUNNING -> SUCCEEDED: When the process exits with code 0
    - RUNNING -> FAILED: On nonzero exit, spawn failure or timeout
    - SUCCEEDED/FAILED -> RUNNING: When the next start request is accepted
    """

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LogStream(str, Enum):
    """Output stream a log line was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass
class Job:
    """One supervised run of the external acquisition process."""

    job_id: str
    target: str
    state: JobState = JobState.RUNNING
    exit_code: Optional[int] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def duration(self) -> Optional[float]:
        """Run time in seconds, once the job has finished."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for API responses."""
        return {
            "job_id": self.job_id,
            "target": self.target,
            "state": self.state.value,
            "exit_code": self.exit_code,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


# Push channel event names
EVENT_STARTED = "job:started"
EVENT_LOG = "job:log"
EVENT_FINISHED = "job:finished"
EVENT_SPAWN_ERROR = "job:spawn_error"

STDERR_PREFIX = "ERROR: "


@dataclass(frozen=True)
class Started:
    """The job was accepted and the process is about to be launched."""

    target: str

    name = EVENT_STARTED

    def payload(self) -> str:
        return self.target


@dataclass(frozen=True)
class LogLine:
    """One line of process output."""

    text: str
    stream: LogStream = LogStream.STDOUT

    name = EVENT_LOG

    def payload(self) -> str:
        # The push channel carries no severity field, so stderr is marked inline
        if self.stream == LogStream.STDERR:
            return f"{STDERR_PREFIX}{self.text}"
        return self.text


@dataclass(frozen=True)
class Finished:
    """The process exited."""

    exit_code: Optional[int]

    name = EVENT_FINISHED

    def payload(self) -> str:
        return f"Download process finished with code {self.exit_code}."


@dataclass(frozen=True)
class SpawnError:
    """The process could not be launched."""

    message: str

    name = EVENT_SPAWN_ERROR

    def payload(self) -> str:
        return f"Failed to start spotdl process: {self.message}"


JobEvent = Union[Started, LogLine, Finished, SpawnError]


def event_to_message(event: JobEvent) -> Dict[str, str]:
    """Encode an event as a push channel message."""
    return {"event": event.name, "data": event.payload()}
