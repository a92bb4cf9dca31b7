"""HarperNet quiz results API."""

__version__ = "1.0.0"
