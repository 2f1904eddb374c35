"""Error types shared across the relay."""


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigurationError(RelayError):
    """Raised at startup when required configuration is missing or invalid."""


class CredentialError(RelayError):
    """Raised when an ephemeral upstream credential cannot be obtained."""


class UpstreamConnectionError(RelayError):
    """Raised when the upstream realtime connection cannot be opened."""


__all__ = [
    "RelayError",
    "ConfigurationError",
    "CredentialError",
    "UpstreamConnectionError",
]
