"""Domain exceptions shared by the sandbox, indexer and registry."""


class ConsoleError(Exception):
    """Base exception for console errors."""

    pass


class InvalidInputError(ConsoleError):
    """Raised when a request field is missing or malformed."""

    pass


class InvalidPathError(InvalidInputError):
    """Raised when a user-supplied path is missing or malformed."""

    pass


class AccessDeniedError(ConsoleError):
    """Raised when a path resolves outside its sandbox root."""

    pass


class NotFoundError(ConsoleError):
    """Raised when a file or directory does not exist."""

    pass


class UnconfiguredError(ConsoleError):
    """Raised when a required root directory is not configured."""

    pass


class RetrievalError(ConsoleError):
    """Raised when the filesystem cannot be read."""

    pass


class ServiceExistsError(ConsoleError):
    """Raised when a service with the same name or URL is already registered."""

    pass


class ServiceNotFoundError(ConsoleError):
    """Raised when a service is not in the registry."""

    pass
