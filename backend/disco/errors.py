class DiscoError(Exception):
    """Base class for collector errors."""


class ConfigError(DiscoError):
    """Raised when settings or the metric definitions cannot be loaded."""


class DiscoveryError(DiscoError):
    """Raised when the machine or uplink interface cannot be resolved."""


class SNMPError(DiscoError):
    """Raised when an SNMP request fails or times out."""


class CounterTypeError(DiscoError):
    """Raised when an OID does not report a Counter32 or Counter64 value."""


class ArchiveError(DiscoError):
    """Raised when an archive file cannot be written."""
