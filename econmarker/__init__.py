"""AI-assisted marking of A-Level economics essays."""

__version__ = "0.1.0"
