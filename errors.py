"""
Exception types shared across the bridge.
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigLoadError(BridgeError):
    """The configuration file could not be read or is incomplete."""


class DiscordLoginError(BridgeError):
    """The bot could not log in to Discord."""


class RconError(BridgeError):
    """Base class for RCON failures."""


class RconNotConnectedError(RconError):
    """A command was sent while the RCON connection is down."""

    def __init__(self, message: str = "RCON is not connected"):
        super().__init__(message)


class RconTransportError(RconError):
    """The RCON connection failed while a command was in flight."""


class StoreError(BridgeError):
    """A file backed store could not be written."""
