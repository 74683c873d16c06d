"""API key authentication dependencies.

Keys are optional: with none configured the console runs open, which is the
usual setup on a trusted LAN, and a warning is logged at startup.
"""

import hashlib
import hmac
from typing import FrozenSet, List, Optional, Set

import structlog
from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import APIKeyHeader

logger = structlog.get_logger(__name__)

API_KEY_HEADER_NAME = "X-API-Key"
API_KEY_QUERY_PARAM = "api_key"

# FastAPI security scheme for OpenAPI docs
api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def hash_api_key(api_key: Optional[str]) -> str:
    """SHA256 prefix of an API key, safe to log."""
    if not api_key:
        return "none"
    return hashlib.sha256(api_key.encode()).hexdigest()[:8]


class APIKeyAuth:
    """Validates API keys against the configured set."""

    # Paths that never require authentication
    DEFAULT_EXCLUDED_PATHS: FrozenSet[str] = frozenset(
        {
            "/health",
            "/liveness",
            "/readiness",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/metrics",
        }
    )

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        excluded_paths: Optional[Set[str]] = None,
    ):
        """
        Initialize API key authentication.

        Args:
            api_keys: Valid API keys. Empty or None disables authentication.
            excluded_paths: Paths that don't require authentication.
        """
        self._api_keys: Set[str] = {k for k in (api_keys or []) if k}
        self._excluded_paths = frozenset(excluded_paths or self.DEFAULT_EXCLUDED_PATHS)

        if self.allow_all:
            logger.warning("No API keys configured, authentication is disabled", component="auth")
        else:
            logger.info("API key authentication initialized", num_keys=len(self._api_keys))

    @property
    def allow_all(self) -> bool:
        """Check if authentication is disabled."""
        return not self._api_keys

    def is_path_excluded(self, path: str) -> bool:
        """Exact or sub-path match; ``/docs`` does not exclude ``/docsecret``."""
        path = path.rstrip("/") or "/"
        return any(path == p or path.startswith(p + "/") for p in self._excluded_paths)

    def validate_api_key(self, api_key: Optional[str]) -> bool:
        if self.allow_all:
            return True
        if not api_key:
            return False
        # Headers decode as latin-1; compare_digest rejects non-ASCII str
        candidate = api_key.encode()
        return any(hmac.compare_digest(candidate, key.encode()) for key in self._api_keys)

    def authenticate(self, request: Request, api_key: Optional[str]) -> None:
        """Authenticate an HTTP request.

        Raises:
            HTTPException: 401 if the key is missing or invalid.
        """
        path = request.url.path
        if self.is_path_excluded(path) or self.validate_api_key(api_key):
            return

        logger.warning(
            "API key authentication failed",
            path=path,
            key_hash=hash_api_key(api_key),
            client_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    def authenticate_websocket(self, websocket: WebSocket) -> bool:
        """Check the key of a WebSocket handshake (header or ``api_key`` query)."""
        api_key = websocket.headers.get(API_KEY_HEADER_NAME) or websocket.query_params.get(
            API_KEY_QUERY_PARAM
        )
        if self.validate_api_key(api_key):
            return True

        logger.warning(
            "WebSocket authentication failed",
            key_hash=hash_api_key(api_key),
            client_ip=websocket.client.host if websocket.client else "unknown",
        )
        return False


# Global auth instance (configured at startup)
_auth_instance: Optional[APIKeyAuth] = None


def configure_auth(api_keys: Optional[List[str]] = None) -> APIKeyAuth:
    """Configure the global auth instance."""
    global _auth_instance
    _auth_instance = APIKeyAuth(api_keys=api_keys)
    return _auth_instance


def get_auth() -> APIKeyAuth:
    """Get the global auth instance (an open one if not configured)."""
    if _auth_instance is None:
        return APIKeyAuth()
    return _auth_instance


async def require_api_key(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header),  # noqa: B008
) -> Optional[str]:
    """Route dependency that enforces the API key when keys are configured.

    Raises:
        HTTPException: If authentication fails
    """
    get_auth().authenticate(request, api_key)
    return api_key
