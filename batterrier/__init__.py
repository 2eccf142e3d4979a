"""Read, set and persist the battery charge limit."""

__version__ = "0.1.0"
