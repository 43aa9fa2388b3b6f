"""Paid traffic analytics API: cached CWV-scored aggregates per site and ISO week."""
__version__ = "1.0.0"
