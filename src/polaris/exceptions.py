"""Polaris exception hierarchy with structured context support."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, MutableMapping


@dataclass(slots=True)
class PolarisError(Exception):
    """Base class for all Polaris exceptions with optional context metadata."""

    message: str
    context: MutableMapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize context mapping."""
        if not isinstance(self.context, Mapping):
            self.context = {"detail": str(self.context)}
        else:
            self.context = dict(self.context)
        Exception.__init__(self, self.__str__())

    def __str__(self) -> str:
        """Include context metadata in the string representation."""
        if self.context:
            context_parts = ", ".join(f"{key}={value}" for key, value in self.context.items())
            return f"{self.message} ({context_parts})"
        return self.message


class NotFoundError(PolarisError):
    """Raised when a referenced entity does not exist."""


class ConversationNotFoundError(NotFoundError):
    """Raised when an agent run references a missing conversation."""


class NameConflictError(PolarisError):
    """Raised when a live sibling of the same kind already uses a name."""


class InvalidNameError(PolarisError):
    """Raised when a file or folder name is empty or malformed."""


class InvalidParentError(PolarisError):
    """Raised when a parent is missing, foreign to the project, or not a folder."""


class NotAFolderError(InvalidParentError):
    """Raised when a folder operation targets a file."""


class NotAFileError(PolarisError):
    """Raised when a file operation targets a folder."""


class UnauthorizedError(PolarisError):
    """Raised when the caller does not own the referenced project."""


class ConfigurationMissingError(PolarisError):
    """Raised when a required secret or setting is not configured."""


class ModelCapabilityError(PolarisError):
    """Raised for transient failures of the language-model capability."""


class RunCancelledError(PolarisError):
    """Raised inside an agent run once its cancellation signal is observed."""


__all__ = [
    "PolarisError",
    "NotFoundError",
    "ConversationNotFoundError",
    "NameConflictError",
    "InvalidNameError",
    "InvalidParentError",
    "NotAFolderError",
    "NotAFileError",
    "UnauthorizedError",
    "ConfigurationMissingError",
    "ModelCapabilityError",
    "RunCancelledError",
]
