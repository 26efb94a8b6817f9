from __future__ import annotations


class StpError(Exception):
    """Base class for everything the engine raises on purpose."""


class TransportError(StpError):
    pass


class ConnectionTimeout(StpError):
    pass


class ProtocolError(StpError):
    pass


class TransferError(StpError):
    pass
