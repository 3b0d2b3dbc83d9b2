"""Shared utilities: errors, validation, caching, retry, logging."""
