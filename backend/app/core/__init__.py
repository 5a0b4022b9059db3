"""Core application modules: settings, database, exceptions and cancellation."""
