"""Exceptions raised by the recognition engine."""


class OticVisionError(Exception):
    """Base error for the recognition engine."""
    pass


class ConfigurationError(OticVisionError, ValueError):
    """Invalid engine or service configuration (bins <= 0, bad threshold, ...)."""
    pass


class CorruptTokenError(OticVisionError, ValueError):
    """A stored token could not be parsed into an RGBToken."""
    pass


class ObservationSinkError(OticVisionError):
    """Recording a similarity observation failed."""
    pass


class ImageLoadError(OticVisionError):
    """An image file could not be read."""
    pass
