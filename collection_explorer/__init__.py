"""Collection Explorer — cached browsing and search over The Met Collection API."""

__version__ = "1.0.0"
