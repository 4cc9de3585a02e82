"""Bulk CLI command execution against network device fleets."""

__version__ = "0.1.0"
