"""HTTP API exposing the three scrape operations."""
