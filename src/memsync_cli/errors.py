"""Exceptions raised by memsync-cli."""


class MemsyncError(Exception):
    """Base class for memsync-cli errors."""


class ConfigError(MemsyncError):
    """Invalid configuration value."""


class PersistenceError(MemsyncError):
    """The local persistence slot could not be read or written."""


class RemoteStoreError(MemsyncError):
    """A call to the remote store failed."""
