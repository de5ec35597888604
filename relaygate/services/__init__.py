"""Service layer for relaygate."""
