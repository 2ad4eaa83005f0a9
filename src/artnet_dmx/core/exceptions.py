"""
Custom Exceptions for artnet-dmx.

Provides a hierarchy of exceptions for the configuration, transport and
protocol layers, enabling targeted error handling in callers.
"""

from __future__ import annotations

from typing import Optional


class ArtNetError(Exception):
    """Base exception for all artnet-dmx errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(ArtNetError):
    """Invalid configuration change."""
    pass


class BroadcastPortError(ConfigError):
    """Port changes are refused while sending to the global broadcast address."""

    def __init__(self, host: str, port: int):
        super().__init__(
            f"Can't change port to {port} when using broadcast address {host}"
        )
        self.host = host
        self.port = port


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(ArtNetError):
    """Base exception for UDP transport failures."""
    pass


class TransportBindError(TransportError):
    """Failed to bind the UDP endpoint."""

    def __init__(self, address: str, port: Optional[int], reason: str):
        super().__init__(
            f"Failed to bind UDP socket to {address or '*'}:{port}: {reason}",
            recoverable=False,
        )
        self.address = address
        self.port = port
        self.reason = reason


class TransportSendError(TransportError):
    """Error during datagram transmission."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(f"Send to {host}:{port} failed: {reason}", recoverable=True)
        self.host = host
        self.port = port
        self.reason = reason


class TransportClosedError(TransportError):
    """Operation attempted on a closed transport."""

    def __init__(self) -> None:
        super().__init__("Transport is closed", recoverable=False)


# =============================================================================
# Protocol Errors
# =============================================================================


class ProtocolDecodeError(ArtNetError):
    """Datagram is not a well-formed packet of the expected type.

    Soft error: discovery drops such datagrams instead of propagating them.
    """

    def __init__(self, reason: str, length: int = 0):
        super().__init__(f"Cannot decode Art-Net packet: {reason}", recoverable=True)
        self.reason = reason
        self.length = length


# =============================================================================
# Lifecycle Errors
# =============================================================================


class ControllerClosedError(ArtNetError):
    """Output requested after the controller was closed."""

    def __init__(self, operation: str):
        super().__init__(
            f"Cannot {operation}: Art-Net controller is closed",
            recoverable=False,
        )
        self.operation = operation
