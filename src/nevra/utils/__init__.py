"""Shared utilities: errors, logging, async bridge."""
