"""Run the stream importer until SIGINT or SIGTERM.

Loads the JSON configuration, subscribes to every eligible Kafka topic,
and writes the consumed elements into the MongoDB match database.

Usage::

    python scripts/run_importer.py --config config/importer.example.json
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the src package is importable when running as a standalone script.
# ---------------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from streamimporter.app import StreamImporter  # noqa: E402
from streamimporter.config import ImporterConfig, load_config  # noqa: E402
from streamimporter.exceptions import ConfigError  # noqa: E402

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON configuration file (defaults are used when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="root log level (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Load the configuration and run the importer."""
    args = _parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )

    logger.info("Read configuration")
    try:
        config = load_config(args.config) if args.config is not None else ImporterConfig()
    except ConfigError as exc:
        logger.error("Unable to load configuration: %s", exc)
        return 1

    importer = StreamImporter.from_config(config)

    def _request_shutdown(signum: int, _frame: object) -> None:
        logger.info("Received %s", signal.Signals(signum).name)
        importer.stop()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    importer.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
