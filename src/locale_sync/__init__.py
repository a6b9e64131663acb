"""Sync localized JSON text trees against a source locale using a translation provider."""

__version__ = "1.0.0"
