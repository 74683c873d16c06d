"""Request and response schemas for API endpoints.

This module provides Pydantic models for API request validation
and response serialization with OpenAPI examples.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class JobStartRequest(BaseModel):
    """Request body for starting a download job."""

    target: Optional[str] = Field(
        None,
        description="Spotify playlist, track or album URL",
        examples=["https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"],
    )


class JobResponse(BaseModel):
    """Snapshot of a download job."""

    job_id: str = Field(..., examples=["550e8400-e29b-41d4-a716-446655440000"])
    target: str = Field(..., examples=["https://open.spotify.com/album/4aawyAB9vmqN3uQ7FjRGTy"])
    state: Literal["idle", "running", "succeeded", "failed"] = Field(..., examples=["running"])
    exit_code: Optional[int] = Field(None, examples=[0])
    error_message: Optional[str] = Field(None, examples=["No such file or directory"])
    started_at: str = Field(..., examples=["2025-12-25T10:30:00+00:00"])
    finished_at: Optional[str] = Field(None, examples=["2025-12-25T10:31:00+00:00"])


class JobAcceptedResponse(BaseModel):
    """Response for an accepted job (HTTP 202)."""

    message: str = Field(..., examples=["Download process started."])
    job: JobResponse


class CurrentJobResponse(BaseModel):
    """State of the job slot."""

    state: Literal["idle", "running", "succeeded", "failed"] = Field(..., examples=["idle"])
    job: Optional[JobResponse] = None


class BrowseEntry(BaseModel):
    """One directory entry of the file browser."""

    name: str = Field(..., examples=["Documents"])
    type: Literal["file", "folder"] = Field(..., examples=["folder"])
    size: Optional[int] = Field(None, description="Size in bytes (files only)", examples=[2048])
    modified: str = Field(..., examples=["2025-12-25"])
    path: str = Field(..., description="Path relative to the browser root", examples=["Documents"])


class MediaEntryResponse(BaseModel):
    """One track of the media catalog."""

    path: str = Field(..., examples=["Daft Punk/Discovery/One More Time.mp3"])
    title: str = Field(..., examples=["One More Time"])
    artist: str = Field(..., examples=["Daft Punk"])
    album: str = Field(..., examples=["Discovery"])


class HostStatsResponse(BaseModel):
    """Host resource usage."""

    cpu: int = Field(..., description="CPU load percentage", examples=[12])
    ram: int = Field(..., description="Memory usage percentage", examples=[43])
    disk: int = Field(..., description="Disk usage percentage", examples=[71])
    temp: int = Field(..., description="CPU temperature in Celsius", examples=[48])


class ServiceCreate(BaseModel):
    """Request body for registering a service."""

    name: Optional[str] = Field(None, examples=["Jellyfin"])
    url: Optional[str] = Field(None, examples=["http://192.168.1.10:8096"])
    icon: Optional[str] = Field(None, examples=["jellyfin.svg"])
    description: str = Field("", examples=["Media server"])
    category: Optional[str] = Field(None, examples=["Media"])


class ServiceResponse(BaseModel):
    """A registered service with its reachability."""

    name: str = Field(..., examples=["Jellyfin"])
    url: str = Field(..., examples=["http://192.168.1.10:8096"])
    icon: str = Field(..., examples=["jellyfin.svg"])
    description: str = Field("", examples=["Media server"])
    category: str = Field(..., examples=["Media"])
    status: Literal["online", "offline"] = Field(..., examples=["online"])


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str = Field(..., examples=["Service removed."])


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    version: Optional[str] = Field(default=None, examples=["4.2.10"])
    details: Optional[Dict[str, Any]] = Field(default=None, examples=[{"subscribers": 2}])


class HealthResponse(BaseModel):
    """Detailed health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    version: str = Field(..., examples=["1.0.0"])
    uptime_seconds: float = Field(..., examples=[3600.5])
    components: Dict[str, ComponentHealth]


class LivenessResponse(BaseModel):
    """Simple liveness check response for container orchestration."""

    status: Literal["alive"] = Field(..., examples=["alive"])


class ReadinessResponse(BaseModel):
    """Readiness check response for load balancer integration."""

    status: Literal["ready", "not_ready"] = Field(..., examples=["ready"])
    ready: bool = Field(..., examples=[True])
    message: Optional[str] = Field(default=None, examples=["Job controller not configured"])


class ErrorDetail(BaseModel):
    """Structured error response.

    All API errors follow this format with machine-readable error codes
    and optional suggestions for resolution.
    """

    error_code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["INVALID_TARGET", "ACCESS_DENIED", "JOB_ALREADY_RUNNING"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["A valid Spotify Playlist, Track, or Album URL is required."],
    )
    details: Optional[str] = Field(None, description="Additional error context")
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    request_id: Optional[str] = Field(
        None,
        description="Request ID for tracing",
        examples=["req_550e8400e29b"],
    )
    suggestion: Optional[str] = Field(None, description="Suggested action to resolve the error")


ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    400: {"model": ErrorDetail, "description": "Invalid request"},
    403: {"model": ErrorDetail, "description": "Path outside the sandbox root"},
    404: {"model": ErrorDetail, "description": "Not found"},
    500: {"model": ErrorDetail, "description": "Unconfigured or read failure"},
}


def error_responses(*codes: int) -> Dict[int | str, Dict[str, Any]]:
    """OpenAPI ``responses`` entries for the given status codes."""
    return {code: ERROR_RESPONSES[code] for code in codes}
