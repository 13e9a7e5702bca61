"""One-way directory mirroring with a persistent sync state and dry-run reports."""

__version__ = "0.1.0"