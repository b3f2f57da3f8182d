"""Waypost: location sharing and direct messaging with an admin API."""

__version__ = "0.1.0"
