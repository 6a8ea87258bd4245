"""Logging and redaction helpers shared by the recovery engine."""
