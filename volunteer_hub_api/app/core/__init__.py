"""Configuration, logging, errors, caching and identity shared by the app."""
