"""Custom exceptions for the Stream Importer.

All exceptions inherit from :class:`ImporterError` so callers can catch
the full family with a single ``except ImporterError`` clause.
"""


class ImporterError(Exception):
    """Base exception for all stream importer errors."""


class ConfigError(ImporterError):
    """Raised when a configuration file cannot be loaded or is malformed."""


class DecodeError(ImporterError):
    """Raised when a raw record cannot be decoded into an element."""


class MissingFieldError(ImporterError):
    """Raised when a required field is absent on a decoded element."""


class MetadataFormatError(ImporterError):
    """Raised when an embedded team, player, or color map is malformed."""


class PositionOutOfRangeError(ImporterError):
    """Raised when an x or y coordinate is not in ``[-180.0, 180.0)``."""


class NoSubscriptionError(ImporterError):
    """Raised when the consumer is polled before any topic is subscribed."""
