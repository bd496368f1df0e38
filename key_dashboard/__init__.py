"""Dashboard and HTTP service for managing API key records."""

__version__ = "1.0.0"
