"""Core settings, logging and exception types."""
