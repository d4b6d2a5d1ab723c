"""Command-line interface for swarmctl."""
