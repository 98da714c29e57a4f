"""Stream Importer.

Consumes data stream elements from Kafka, converts them into the
document shapes of the match database, and bulk-inserts them into
MongoDB.
"""

from streamimporter.config import ImporterConfig
from streamimporter.exceptions import ImporterError

__version__ = "0.1.0"

__all__ = ["ImporterConfig", "ImporterError", "__version__"]
