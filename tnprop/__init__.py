"""Tamil Nadu property-transaction extraction service."""

__version__ = "1.0.0"
