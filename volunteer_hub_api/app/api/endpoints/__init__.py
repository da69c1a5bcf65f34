"""Domain routers of the HTTP API."""
