"""Exception hierarchy for Atelier."""

from __future__ import annotations

from dataclasses import dataclass


class AtelierError(Exception):
    """Base class for all Atelier errors."""


class ConfigError(AtelierError):
    """Missing or invalid configuration (unknown provider, missing API key...)."""


@dataclass(frozen=True, slots=True)
class SchemaFailure:
    """One tool definition that failed validation."""

    index: int
    name: str | None
    reason: str


class ToolSchemaError(AtelierError):
    """Tool definitions failed validation before being sent to the model."""

    def __init__(self, failures: list[SchemaFailure]) -> None:
        self.failures = failures
        listing = "; ".join(
            f"#{f.index} ({f.name or '<unnamed>'}): {f.reason}" for f in failures
        )
        super().__init__(f"Invalid tool definitions: {listing}")


class ToolArgumentError(AtelierError):
    """A tool call's arguments could not be parsed or validated."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ProviderError(AtelierError):
    """Error raised by (or on behalf of) a model provider.

    ``transient`` marks errors worth retrying (network failures, rate
    limits, 5xx responses).
    """

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class RetryExhaustedError(ProviderError):
    """A transient provider error persisted through every retry attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}",
            transient=False,
            status_code=getattr(last_error, "status_code", None),
        )
        self.attempts = attempts
        self.last_error = last_error


class VfsError(AtelierError):
    """Base class for virtual file system errors."""


class VfsFileNotFoundError(VfsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"No such file or directory: {path}")
        self.path = path


class VfsFileExistsError(VfsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"File exists: {path}")
        self.path = path


class VfsNotADirectoryError(VfsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Not a directory: {path}")
        self.path = path


class VfsDirectoryNotEmptyError(VfsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Directory not empty: {path}")
        self.path = path
