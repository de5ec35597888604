"""Command line interface for relaygate."""
