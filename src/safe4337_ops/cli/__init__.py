"""Command-line interface for safe4337-ops."""
