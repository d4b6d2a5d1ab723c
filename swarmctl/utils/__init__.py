"""Utility modules for swarmctl."""
