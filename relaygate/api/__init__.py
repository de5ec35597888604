"""HTTP API for relaygate."""
