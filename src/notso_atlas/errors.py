"""Exception types raised by the atlas engine."""


class AtlasError(Exception):
    """Base class for atlas engine errors."""


class ConfigurationError(AtlasError, ValueError):
    """Invalid configuration; fails the whole ``process()`` call."""


class ImageNotReadableError(AtlasError):
    """An image's pixels cannot be made CPU-readable."""
