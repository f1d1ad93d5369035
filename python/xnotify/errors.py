"""Exceptions raised by xnotify."""


class XnotifyError(Exception):
    """Base class for xnotify errors."""


class ConfigurationError(XnotifyError):
    """Invalid startup configuration. Fatal before the engine starts."""


class InvalidEventError(XnotifyError, ValueError):
    """An event payload that cannot be turned into an Event."""
