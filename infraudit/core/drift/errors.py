"""
Drift Engine Errors
-------------------
Exception types raised at the edges of the drift engine. The engine itself
never raises on well-formed configuration values.
"""


class DriftEngineError(Exception):
    """Base class for drift engine errors."""


class ConfigDecodeError(DriftEngineError, ValueError):
    """A configuration document could not be decoded."""

    def __init__(self, message: str, source: str = "document"):
        super().__init__(f"Failed to parse {source}: {message}")
        self.source = source


class UnsupportedValueError(DriftEngineError, TypeError):
    """A value outside the JSON value model reached the engine."""

    def __init__(self, value: object):
        super().__init__(f"Unsupported configuration value of type {type(value).__name__}")
        self.value = value
