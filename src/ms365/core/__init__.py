"""Core utilities: errors, logging and argument validation."""
