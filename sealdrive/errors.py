class SealDriveError(Exception):
    """Base class for SealDrive-specific errors."""


class ConfigurationError(SealDriveError, ValueError):
    pass


# Source path or backend id absent
class NotFound(SealDriveError, FileNotFoundError):
    pass


# Envelope
class MalformedInput(SealDriveError, ValueError):
    pass


class DecryptionFailure(SealDriveError, ValueError):
    """Wrong password or corrupted ciphertext; the two are indistinguishable."""


# Storage
class BackendUnavailable(SealDriveError):
    pass


class OperationFailure(SealDriveError):
    """A resolver operation failed; ``cause`` holds the original error."""

    def __init__(self, action: str, target: str, cause: BaseException):
        super().__init__(f"Failed to {action} {target}: {cause}")
        self.action = action
        self.target = target
        self.cause = cause
