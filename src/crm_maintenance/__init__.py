"""CRM maintenance command-line tools."""

__all__ = ["cli", "console"]
