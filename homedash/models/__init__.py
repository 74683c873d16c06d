"""Data models for the application."""

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
from homedash.models.media import DirectoryEntry, EntryKind, MediaEntry

__all__ = [
    "Job",
    "JobState",
    "JobEvent",
    "LogStream",
    "Started",
    "LogLine",
    "Finished",
    "SpawnError",
    "DirectoryEntry",
    "EntryKind",
    "MediaEntry",
]
