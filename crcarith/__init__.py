"""CRC-checked arithmetic requests over TCP or UDP: client, error-injecting relay and server."""

__version__ = "0.1.0"