"""Operational scripts for Waypost."""
