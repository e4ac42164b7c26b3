"""Service layer for the reminder engine."""
