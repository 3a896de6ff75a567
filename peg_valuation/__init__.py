"""PEG-based fair value estimation service."""

__version__ = "1.0.0"
