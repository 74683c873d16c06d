"""Input validation utilities for the API layer.

This module validates acquisition targets and the small set of free-form
fields accepted by the service registry.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[str] = None


class TargetValidator:
    """Validates catalog URLs accepted by the acquisition job.

    A target is ``https://open.spotify.com/<type>/<id>`` where type is one of
    the supported resource types. Anything after the identifier (for example
    a ``?si=`` share parameter) is tolerated.
    """

    TARGET_PATTERN = re.compile(r"^https://open\.spotify\.com/(playlist|track|album)/[a-zA-Z0-9]+")

    MAX_TARGET_LENGTH = 2048

    def validate(self, target: Optional[str]) -> ValidationResult:
        """Validate an acquisition target.

        Args:
            target: Catalog URL submitted by the client

        Returns:
            ValidationResult with validation status and any error message
        """
        if not target or not isinstance(target, str):
            return ValidationResult(
                is_valid=False,
                error_message="A valid Spotify Playlist, Track, or Album URL is required.",
            )

        target = target.strip()
        if len(target) > self.MAX_TARGET_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=f"URL exceeds maximum length of {self.MAX_TARGET_LENGTH}",
            )

        # Whitespace or control characters would be passed on to the tool verbatim
        if any(ch.isspace() or ord(ch) < 32 for ch in target):
            return ValidationResult(
                is_valid=False, error_message="URL must not contain whitespace"
            )

        if not self.TARGET_PATTERN.match(target):
            logger.debug("target_rejected", target=target)
            return ValidationResult(
                is_valid=False,
                error_message="A valid Spotify Playlist, Track, or Album URL is required.",
            )

        return ValidationResult(is_valid=True, sanitized_value=target)


class ServiceURLValidator:
    """Validates the URL of a registered service card."""

    ALLOWED_SCHEMES: FrozenSet[str] = frozenset({"http", "https"})

    def validate(self, url: Optional[str]) -> ValidationResult:
        """Validate a service URL.

        Args:
            url: URL to validate

        Returns:
            ValidationResult with validation status and any error message
        """
        if not url or not isinstance(url, str):
            return ValidationResult(is_valid=False, error_message="URL is required")

        url = url.strip()
        try:
            parsed = urlparse(url)
        except ValueError:
            return ValidationResult(is_valid=False, error_message="Invalid URL format")

        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return ValidationResult(
                is_valid=False, error_message="URL must use http or https scheme"
            )

        if not parsed.netloc:
            return ValidationResult(is_valid=False, error_message="URL must include a host")

        return ValidationResult(is_valid=True, sanitized_value=url)


# Singleton instances for convenience
target_validator = TargetValidator()
service_url_validator = ServiceURLValidator()
