class WslockError(Exception):
    """Base exception for all wslock errors."""

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)


class ManifestError(WslockError):
    pass


class ManifestParseError(ManifestError):
    pass


class ManifestValidationError(ManifestError):
    pass


class WorkspaceNotFoundError(WslockError):
    """Raised when a workspace ident or path is not a member of the project."""


class ResolutionError(WslockError):
    """Raised when a descriptor cannot be resolved to a locator."""


class FetchError(WslockError):
    """Raised when the artifact of a resolved locator cannot be retrieved."""


class InvariantViolationError(WslockError):
    """Raised when an internal invariant does not hold (should be unreachable)."""


class LockFileError(WslockError):
    """Raised when lock file parsing, generation, or I/O fails."""


class PackageCacheError(WslockError):
    """Raised when cache operations (lookup, store) fail."""


class ConfigError(WslockError):
    """Raised when the configuration file or environment holds invalid values."""


class SwapError(WslockError):
    """Raised when a rename or write fails while the canonical lockfile slot is borrowed.

    When ``recovery_needed`` is set, restoring the directory failed as well and
    files may be left under the wrong name: the message lists them.
    """

    def __init__(self, message: str = "", directory: str = "", recovery_needed: bool = False) -> None:
        self.directory = directory
        self.recovery_needed = recovery_needed
        super().__init__(message)
