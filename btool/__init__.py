"""Directory snapshots with content-defined chunking and de-duplicated pack storage."""

__version__ = "0.1.0"