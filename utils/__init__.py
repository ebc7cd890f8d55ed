"""Shared helpers for the reminder service."""

from .log_sanitizer import redact_endpoint, sanitize_log, sanitize_for_log

__all__ = ["redact_endpoint", "sanitize_log", "sanitize_for_log"]
