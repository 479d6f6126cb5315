"""Sync the latest LibreLinkUp glucose reading into a health store."""

__version__ = "0.1.0"
