"""Text extraction pipeline for uploaded content files."""

__version__ = "1.0.0"
