"""HTTP API for the gateway bridge."""
