"""
Error taxonomy for the evolution engine and checkpoint layer.

Filesystem failures are not wrapped: they surface as the built-in
OSError family so callers can retry or alert.
"""


class LotoEvoError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(LotoEvoError, ValueError):
    """Malformed player, draw or checkpoint-key data."""


class NotFoundError(LotoEvoError, LookupError):
    """A checkpoint or stored artifact does not exist."""


class DecodeError(LotoEvoError, ValueError):
    """A binary buffer does not match its declared weight specification."""


class TrainingError(LotoEvoError, RuntimeError):
    """The tensor-compute backend failed during fit/predict."""
