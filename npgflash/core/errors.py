"""Domain-specific errors for npgflash."""


class NpgflashError(Exception):
    """Base error for npgflash."""


class ConfigError(NpgflashError):
    """Raised when the configuration file cannot be read or validated."""


class PortNotSelected(NpgflashError):
    """Raised when a flash is requested without a target port."""


class PortDiscoveryError(NpgflashError):
    """Raised by port discovery; absorbed by the port monitor."""


class UnknownFirmware(NpgflashError):
    """Raised when a firmware identifier is neither built-in nor stored."""


class SessionBusy(NpgflashError):
    """Raised when a flash is requested while another one is in progress."""


class FlashFailed(NpgflashError):
    """Raised when a flash attempt ends in failure."""


class DownloadError(NpgflashError):
    """Base download error."""


class DownloadFailed(DownloadError):
    """Raised when an asset download fails."""


class DownloadTimeout(DownloadError):
    """Raised when an asset download exceeds its time budget."""


class ReleaseLookupFailed(NpgflashError):
    """Raised when the latest release of a repository cannot be fetched."""


class NameConflict(NpgflashError):
    """Raised when a custom firmware filename is already taken."""


class StorageFailure(NpgflashError):
    """Raised when custom firmware storage cannot be read or written."""


class FirmwareNotFound(StorageFailure):
    """Raised when deleting a custom firmware that is not stored."""
