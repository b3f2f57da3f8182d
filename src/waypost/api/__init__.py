"""HTTP API for account administration."""
