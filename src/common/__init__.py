"""Shared helpers: logging, environment expansion and HTTP transport."""
