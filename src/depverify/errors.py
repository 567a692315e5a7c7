"""Error types raised by depverify ports and configuration."""


class DepVerifyError(Exception):
    """Base class for all depverify errors."""


class ConfigError(DepVerifyError):
    """Invalid configuration or unit selection; aborts the whole invocation."""


class FilesystemError(DepVerifyError):
    """A local path could not be removed or created."""


class TransportError(DepVerifyError):
    """Fetching from a canonical source failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class TransportUnreachable(TransportError):
    """Network, auth or timeout failure reaching the canonical source."""


class RefNotFound(TransportError):
    """The reference does not exist in the canonical source."""
