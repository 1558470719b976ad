"""Performance-driven scoring and analysis engine for LinkedIn content."""

__version__ = "0.1.0"
