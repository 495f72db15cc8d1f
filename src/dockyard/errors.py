"""Exception hierarchy for catalog ingestion and deployment management."""

from typing import Optional


class DockyardError(Exception):
    """Base exception for all Dockyard errors."""

    pass


class ConfigurationError(DockyardError):
    """Raised when a required configuration value is missing or invalid."""

    pass


class UnsafeUrl(DockyardError):
    """Raised when a URL fails the outbound request policy.

    Attributes:
        url: The rejected URL
        reason: Why the URL was rejected
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Unsafe URL '{url}': {reason}")


class NetworkError(DockyardError):
    """Raised when a remote resource cannot be retrieved."""

    pass


class SizeLimitExceeded(DockyardError):
    """Raised when a download or archive grows past its byte ceiling.

    Attributes:
        limit: The ceiling in bytes
    """

    def __init__(self, message: str, limit: int) -> None:
        self.limit = limit
        super().__init__(message)


class ZipSlipDetected(DockyardError):
    """Raised for an archive entry whose path escapes the extraction root.

    The extractor skips such entries rather than aborting; the exception is
    used to report them.
    """

    def __init__(self, entry: str) -> None:
        self.entry = entry
        super().__init__(f"Archive entry escapes extraction directory: {entry}")


class NoAppsFolderFound(DockyardError):
    """Raised when an extracted archive has no recognizable bundle folder."""

    pass


class CatalogParseError(DockyardError):
    """Raised when catalog data for a source or bundle cannot be parsed."""

    pass


class SourceValidationError(DockyardError):
    """Raised when a source definition violates registry invariants."""

    pass


class DuplicateSource(SourceValidationError):
    """Raised when a source URL is already registered."""

    pass


class SourceNotFound(DockyardError):
    """Raised when a source id is not present in the registry."""

    pass


class DeploymentNotFound(DockyardError):
    """Raised when an app has no resolvable deployment on disk."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"App deployment not found: {name}")


class InvalidAction(DockyardError):
    """Raised for a lifecycle action outside the supported set."""

    pass


class CommandFailed(DockyardError):
    """Raised when an orchestrator command exits unsuccessfully.

    Attributes:
        command: The argv that was executed
        exit_code: Process exit status, if the process finished
        stderr: Captured standard error text
    """

    def __init__(
        self,
        command: list,
        exit_code: Optional[int],
        stderr: str,
        stdout: str = "",
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Command failed: {detail}")


class CommandTimeout(CommandFailed):
    """Raised when an orchestrator command runs past its timeout."""

    def __init__(self, command: list, timeout: float, stderr: str = "", stdout: str = "") -> None:
        self.timeout = timeout
        super().__init__(command, None, stderr or f"timed out after {timeout} seconds", stdout)


class FileSystemError(DockyardError):
    """Raised when a filesystem operation on managed directories fails."""

    pass


class InstallDisabled(DockyardError):
    """Raised when saving deployments to the server is turned off in settings."""

    pass
