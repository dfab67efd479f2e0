"""Core layer: configuration, exceptions and logging."""
