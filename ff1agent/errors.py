"""Exception hierarchy shared by the engine, the collaborators and the CLI."""

from __future__ import annotations

from typing import Any


class FF1Error(Exception):
    """Base class for every error raised by ff1agent."""


class ConfigError(FF1Error):
    """Configuration is missing or unusable (no model, no API key, ...)."""


class InvalidIdError(FF1Error):
    """A registry write was attempted with an empty identifier."""


class ArgumentValidationError(FF1Error):
    """A model-issued operation call did not match the operation schema.

    Recoverable: the message is fed back to the model as the tool result.
    """

    def __init__(self, operation: str, problems: list[str]):
        self.operation = operation
        self.problems = problems
        super().__init__(f"Invalid arguments for '{operation}': " + "; ".join(problems))


class RequirementValidationError(FF1Error):
    """A terminal requirement payload is structurally incomplete."""


class NeedsClarificationError(FF1Error):
    """The model asked a question but the caller cannot answer it (non-interactive)."""

    def __init__(self, question: str):
        self.question = question
        super().__init__(f"More information needed: {question}")


class AcquisitionError(FF1Error):
    """No items could be acquired for the requested sources."""


class SchemaValidationError(FF1Error):
    """A built playlist failed DP-1 validation too many times."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.details = details or []
        super().__init__(message)


class DeliveryError(FF1Error):
    """Sending to a device or publishing to a feed server failed."""


class ProviderError(FF1Error):
    """The language-model provider failed for a reason other than rate limiting."""

    def __init__(self, message: str, model: str = "", base_url: str = ""):
        self.model = model
        self.base_url = base_url
        super().__init__(message)
