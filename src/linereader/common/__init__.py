"""Shared errors, models, configuration and event logging."""
