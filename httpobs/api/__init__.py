"""HTTP API: system routes."""
