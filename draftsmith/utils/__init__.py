"""Logging helpers: console logging and the JSONL audit trail."""
