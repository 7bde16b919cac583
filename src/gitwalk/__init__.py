"""gitwalk: repository history ingestion into a fact store."""

__version__ = "0.1.0"
