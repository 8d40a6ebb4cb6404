"""Shared utilities used by all tools."""
