"""Domain-specific errors for blescan."""


class BlescanError(Exception):
    """Base error for blescan."""


class ConfigValidationError(BlescanError):
    """Raised when a config file does not conform to schema or semantics."""


class ConfigLoadError(BlescanError):
    """Raised when reading config sources fails."""


class DeviceSelectionError(BlescanError):
    """Raised when a device hint cannot resolve a single scanned peripheral."""


class RadioError(BlescanError):
    """Base radio error."""


class AdapterUnavailableError(RadioError):
    """Raised when the Bluetooth adapter is not powered on."""


class DiscoveryError(RadioError):
    """Raised when a scan cannot be started."""


class ConnectError(RadioError):
    """Raised on BLE connect failures."""


class DisconnectError(RadioError):
    """Raised when tearing down a connection fails."""


class ServiceDiscoveryError(RadioError):
    """Raised when GATT service discovery fails."""


class CharacteristicDiscoveryError(RadioError):
    """Raised when characteristic discovery for a service fails."""


class ReadError(RadioError):
    """Raised when a characteristic read fails."""


class NotifyError(RadioError):
    """Raised when enabling or disabling notifications fails."""


class RadioTimeoutError(RadioError):
    """Raised when the radio does not report back in time."""
