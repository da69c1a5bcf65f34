"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
API runs out of the box against the local JSON file store.  Setting
both ``SUPABASE_URL`` and ``SUPABASE_ANON_KEY`` switches the process to
the hosted relational backend instead (see ``storage.factory``).
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Volunteer Hub API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Directory holding the JSON documents of the local file backend.
    # Relative paths are resolved against the current working directory,
    # matching how the file server has always been started.
    data_dir: str = os.getenv("DATA_DIR", "data")

    # Credentials for the hosted relational API.  Both must be present
    # for the remote backend to be selected; a half-configured remote is
    # treated as not configured.
    remote_url: str = os.getenv("SUPABASE_URL", "")
    remote_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    remote_timeout: float = float(os.getenv("REMOTE_TIMEOUT", "15"))

    # Upper bound on live cache entries.  Expiry is per entry; this only
    # protects memory when many distinct ids are read.
    cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "4096"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3001"))

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url and self.remote_key)


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at instantiation time, environment variables should
# be set before importing this module.
settings = Settings()
