"""
Error taxonomy for the database connectivity layer.

Configuration-time errors propagate to process startup; connectivity errors
are absorbed by the health probe and reported as data.
"""


class DatabaseError(Exception):
    """Base class for connectivity-layer errors."""


class ConfigurationError(DatabaseError, ValueError):
    """Malformed or missing connection parameters (raised at resolve time)."""


class TLSMaterialError(ConfigurationError):
    """CA material could not be read, decoded, or parsed as PEM."""


class ConnectivityError(DatabaseError):
    """Database unreachable: DNS, TCP, TLS handshake, auth, timeout, pool exhausted."""
