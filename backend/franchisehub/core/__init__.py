"""Core utilities: configuration, security, tenancy and shared helpers."""
