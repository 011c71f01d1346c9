"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class TruckersMPCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(TruckersMPCliError):
    """Raised for issues related to configuration loading or validation."""


class MalformedManifestError(TruckersMPCliError):
    """Raised when the remote file manifest is missing fields or has the wrong shape."""


class TransportError(TruckersMPCliError):
    """Raised when a remote resource cannot be fetched."""

    def __init__(self, message: str, locator: str | None = None):
        super().__init__(message)
        self.locator = locator


class VerificationIOError(TruckersMPCliError):
    """
    Raised when a local file exists but cannot be read for hashing.

    This is never raised for a missing file; absence is a routine outcome.
    """

    def __init__(self, message: str, paths: list[str] | None = None):
        super().__init__(message)
        self.paths = paths or []


class BatchDownloadError(TruckersMPCliError):
    """Raised after a download batch completes with one or more failed entries."""

    def __init__(self, failures: list):
        self.failures = failures
        paths = ", ".join(f.entry.relative_path for f in failures[:5])
        more = f" (+{len(failures) - 5} more)" if len(failures) > 5 else ""
        super().__init__(f"{len(failures)} file(s) failed to download: {paths}{more}")


class ConcurrencyAdmissionError(TruckersMPCliError):
    """Raised when a concurrency permit cannot be acquired."""


class SyncIncompleteError(TruckersMPCliError):
    """
    Raised when a sync run ends with files that still do not match the manifest.
    """

    def __init__(self, message: str, residual: tuple = (), report=None):
        super().__init__(message)
        self.residual = tuple(residual)
        self.report = report

    @property
    def residual_paths(self) -> list[str]:
        return [entry.relative_path for entry in self.residual]


class RetryBudgetExhaustedError(SyncIncompleteError):
    """Raised when every allowed re-download cycle was used without converging."""
