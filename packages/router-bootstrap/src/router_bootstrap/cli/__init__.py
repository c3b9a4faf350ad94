"""Command line interface for router bootstrap."""
