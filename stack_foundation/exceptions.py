"""Exception hierarchy for stack-foundation."""

from __future__ import annotations


class FoundationError(Exception):
    """Base exception for all stack-foundation errors."""


class ConfigurationError(FoundationError):
    """Process-level configuration could not be resolved (cache root, env values)."""


class RemoteFetchError(FoundationError):
    """An HTTP request failed or returned a non-success status.

    Attributes:
        url: The requested URL.
        status_code: HTTP status code, or None for transport errors.
        body: Response body text (empty for transport errors).
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        parts = [repr(str(self)), f"url={self.url!r}"]
        if self.status_code is not None:
            parts.append(f"status_code={self.status_code!r}")
        return f"{type(self).__name__}({', '.join(parts)})"


class CacheMisuseError(FoundationError):
    """The caller used the wrong accessor or an unusable reference."""


class ExternalToolError(FoundationError):
    """An external executable (helm) failed or could not be started.

    Attributes:
        command: The argv that was executed.
        returncode: Exit status, or None if the process never started.
        stderr: Captured standard error.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str],
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ResourceMatchError(FoundationError):
    """A rendered-resource lookup did not match exactly one resource."""
