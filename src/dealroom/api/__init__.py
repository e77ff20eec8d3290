"""HTTP API for the Dealroom service."""
