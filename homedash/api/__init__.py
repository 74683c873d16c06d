"""API endpoints."""

from homedash.api import events, files, health, jobs, media, metrics, services, stats

__all__ = [
    "events",
    "files",
    "health",
    "jobs",
    "media",
    "metrics",
    "services",
    "stats",
]
