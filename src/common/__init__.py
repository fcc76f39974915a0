"""Shared helpers: logging, HTTP, atomic file writes and the error taxonomy."""
