"""Storage backends: the remote PostgREST API and local JSON files."""
