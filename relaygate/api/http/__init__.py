"""HTTP adapters for the relaygate API."""
