"""Agent error types."""

from __future__ import annotations


class ManifestValidationError(Exception):
    """Raised when an agent manifest fails parsing or validation."""
