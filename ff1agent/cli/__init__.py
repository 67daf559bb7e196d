"""Command-line interface for ff1agent."""
