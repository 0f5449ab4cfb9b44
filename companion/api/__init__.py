"""HTTP API for review analytics and spaced review."""
