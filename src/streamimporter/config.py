"""Configuration dataclasses for the Stream Importer.

All configuration containers are frozen (immutable) and slotted. Each
dataclass provides sensible defaults so that a zero-argument
``ImporterConfig()`` is always valid. :func:`load_config` builds an
``ImporterConfig`` from a JSON file.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

import orjson

from streamimporter.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True, slots=True)
class KafkaConfig:
    """Configuration of the Kafka source.

    Attributes:
        broker_list: Comma-separated ``host:port`` bootstrap servers.
        group_id_prefix: Prefix of the consumer group id. A random
            UUID is appended per process.
        poll_timeout: Maximum time in seconds a single poll blocks.
        subscription_interval: Seconds between two subscription
            refreshes.
        forbidden_topics: Topic names that are never subscribed.
        max_poll_records: Maximum number of records returned by one
            poll.
        metadata_timeout: Maximum time in seconds a topic listing
            blocks.
    """

    broker_list: str = "localhost:9092"
    group_id_prefix: str = "streamImporter"
    poll_timeout: float = 1.0
    subscription_interval: float = 10.0
    forbidden_topics: tuple[str, ...] = ()
    max_poll_records: int = 500
    metadata_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate timeouts and batch size."""
        for name in ("poll_timeout", "subscription_interval", "metadata_timeout"):
            value = getattr(self, name)
            if value <= 0.0:
                msg = f"{name} must be positive, got {value}"
                raise ValueError(msg)

        if self.max_poll_records < 1:
            msg = f"max_poll_records must be at least 1, got {self.max_poll_records}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class MongoConfig:
    """Configuration of the MongoDB destination.

    Attributes:
        connection_string: MongoDB connection URI.
        database: Name of the database holding the five collections.
        ordered_inserts: Whether bulk inserts stop at the first failing
            document (``True``) or attempt every document (``False``).
    """

    connection_string: str = "mongodb://localhost:27017"
    database: str = "streamTeam"
    ordered_inserts: bool = True

    def __post_init__(self) -> None:
        """Validate that a database name is set."""
        if not self.database:
            msg = "database must be a non-empty string"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ImporterConfig:
    """Master configuration for the stream importer.

    Attributes:
        kafka: Kafka source configuration.
        mongo: MongoDB destination configuration.
        wait_list_warn_size: Wait-list length at which a warning is
            logged. The wait list itself is never truncated.

    Raises:
        ValueError: If any configuration invariant is violated.
    """

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    wait_list_warn_size: int = 10_000

    def __post_init__(self) -> None:
        """Validate configuration invariants after initialization."""
        if self.wait_list_warn_size < 1:
            msg = f"wait_list_warn_size must be at least 1, got {self.wait_list_warn_size}"
            raise ValueError(msg)


# ------------------------------------------------------------------
# Loading
# ------------------------------------------------------------------


def load_config(path: Path) -> ImporterConfig:
    """Load an :class:`ImporterConfig` from a JSON file.

    The document may contain a ``kafka`` and a ``mongo`` object plus
    the top-level ``wait_list_warn_size``. Missing keys keep their
    defaults.

    Args:
        path: Path to the JSON configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read, is not valid JSON,
            contains unknown keys, or violates a config invariant.
    """
    try:
        raw = orjson.loads(path.read_bytes())
    except OSError as exc:
        msg = f"Cannot read config file {path}: {exc}"
        raise ConfigError(msg) from exc
    except orjson.JSONDecodeError as exc:
        msg = f"Config file {path} is not valid JSON: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"Config file {path} must contain a JSON object"
        raise ConfigError(msg)

    raw = dict(raw)
    kafka = _build_section(KafkaConfig, "kafka", raw.pop("kafka", {}))
    mongo = _build_section(MongoConfig, "mongo", raw.pop("mongo", {}))
    top_level = _coerce_fields(ImporterConfig, "<root>", raw, skip=("kafka", "mongo"))

    try:
        return ImporterConfig(kafka=kafka, mongo=mongo, **top_level)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _build_section(cls: type[Any], section: str, raw: object) -> Any:
    """Instantiate a config section from its raw JSON object."""
    if not isinstance(raw, dict):
        msg = f"Config section {section!r} must be an object"
        raise ConfigError(msg)
    kwargs = _coerce_fields(cls, section, raw)
    try:
        return cls(**kwargs)
    except ValueError as exc:
        raise ConfigError(f"{section}: {exc}") from exc


def _coerce_fields(
    cls: type[Any],
    section: str,
    raw: dict[str, Any],
    skip: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Check raw values against the types of the dataclass defaults.

    Args:
        cls: Config dataclass whose zero-argument instance supplies the
            expected value types.
        section: Section name used in error messages.
        raw: Raw key-value pairs from the JSON document.
        skip: Field names handled elsewhere.

    Returns:
        Keyword arguments ready for ``cls(**kwargs)``.

    Raises:
        ConfigError: On unknown keys or ill-typed values.
    """
    known = {f.name for f in fields(cls)} - set(skip)
    unknown = sorted(set(raw) - known)
    if unknown:
        msg = f"Unknown key(s) in config section {section!r}: {', '.join(unknown)}"
        raise ConfigError(msg)

    defaults = cls()
    kwargs: dict[str, Any] = {}
    for name, value in raw.items():
        expected = getattr(defaults, name)
        kwargs[name] = _coerce_value(section, name, value, expected)
    return kwargs


def _coerce_value(section: str, name: str, value: object, expected: object) -> object:
    """Convert *value* to the type of *expected* or raise ConfigError."""
    ok: bool
    if isinstance(expected, bool):
        ok = isinstance(value, bool)
    elif isinstance(expected, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)  # type: ignore[arg-type]
    elif isinstance(expected, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(expected, str):
        ok = isinstance(value, str)
    elif isinstance(expected, tuple):
        ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
        if ok:
            value = tuple(value)  # type: ignore[arg-type]
    else:
        ok = False

    if not ok:
        msg = (
            f"Config key {section}.{name} must be of type "
            f"{type(expected).__name__}, got {value!r}"
        )
        raise ConfigError(msg)
    return value
