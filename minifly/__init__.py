"""Local development tools for a machines platform: API client, models, LiteFS, DNS and CLI."""

__version__ = "0.1.3"