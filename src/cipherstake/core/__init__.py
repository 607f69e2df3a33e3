"""Ambient infrastructure: errors, configuration, logging and metrics."""
