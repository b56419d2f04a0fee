class VigiaError(Exception):
    """Base class for every error raised by the audit engine."""


class ManifestParseError(VigiaError):
    """A single manifest could not be parsed. Collected, never fatal."""

    def __init__(self, ecosystem, file: str, cause: Exception):
        self.ecosystem = ecosystem
        self.file = file
        self.cause = cause
        filename = file.replace("\\", "/").rsplit("/", 1)[-1]
        super().__init__(f"Failed to parse {filename} file: {cause}")


class TransitiveResolutionError(VigiaError):
    """Lookup of one dependency's transitive graph failed."""

    def __init__(self, dependency: str, cause: Exception):
        self.dependency = dependency
        self.cause = cause
        super().__init__(f"{dependency}: {cause}")


class VulnerabilityLookupError(VigiaError):
    """A vulnerability database batch (or detail fetch) failed."""


class FatalInputError(VigiaError):
    """No usable manifest was found; the audit cannot start."""


class AuditCancelledError(VigiaError):
    """Raised when a run is cancelled between two waves.

    `result` holds whatever was accumulated up to that point (an AuditResult
    once the auditor has wrapped it, the raw wave results inside batching).
    """

    def __init__(self, message: str = "Audit cancelled", result=None):
        super().__init__(message)
        self.result = result
