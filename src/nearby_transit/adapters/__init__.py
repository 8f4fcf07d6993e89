"""Adapters layer - external interfaces (config, HTTP API, snapshot files)."""
