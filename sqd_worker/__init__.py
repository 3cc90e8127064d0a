"""Worker node building blocks: chunk layout, downloads, assignments, rate limiting, query logs and configuration."""

__version__ = "2.4.0"