"""Core utilities: configuration, logging, errors, sandboxing and metrics."""
