"""Shared helpers for logging and connection bookkeeping."""
