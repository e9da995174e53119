"""Logging, option parsing, progress and output helpers."""
