"""Exceptions raised while watching and unpacking release directories."""


class UnpackError(Exception):
    """Base class for every error raised by the release watcher."""


class ConfigError(UnpackError):
    """Raised when the configuration file cannot be read or is invalid."""


class RuleRejected(UnpackError):
    """Raised when a changed path does not satisfy its path rule."""


class DiscoveryError(UnpackError):
    """Raised when no usable checksum file or first volume is found."""


class IncompleteError(UnpackError):
    """Raised when files referenced by the checksum file are still missing."""

    def __init__(self, directory, exists: int, total: int):
        super().__init__(f"{directory} is incomplete: {exists}/{total} files")
        self.directory = directory
        self.exists = exists
        self.total = total


class VerificationError(UnpackError):
    """Raised when a file fails checksum verification."""

    def __init__(self, message: str, filename: str = None):
        super().__init__(message)
        self.filename = filename


class ExtractionError(UnpackError):
    """Raised when decoding or writing an archive fails."""


class CleanupError(UnpackError):
    """Raised when removing the original archive files fails."""


class PostProcessError(UnpackError):
    """Raised when the post-process command fails."""
