"""HTTP surface for the reminder service."""
