"""
Backend selection.

The backend is chosen once, when the service container is built: the
remote backend when both its URL and key are configured, the local
file backend otherwise.  The choice is never revisited per call, so a
remote outage surfaces as ``BackendUnavailableError`` instead of
silently writing to local files.
"""

import logging

from ..core.config import Settings
from ..core.errors import DataAccessError
from .base import StorageBackend
from .local import LocalFileBackend
from .remote import RemoteBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> StorageBackend:
    """Build the storage backend described by ``settings``."""
    if settings.remote_configured:
        logger.info("Using remote backend at %s", settings.remote_url)
        return RemoteBackend(settings.remote_url, settings.remote_key, timeout=settings.remote_timeout)
    logger.info("Remote backend not configured, using local files in %s", settings.data_dir)
    backend = LocalFileBackend(settings.data_dir)
    try:
        backend.upgrade_legacy_documents()
    except DataAccessError as exc:
        # The documents stay as they are; reads of them fail until fixed.
        logger.error("Could not upgrade legacy documents in %s: %s", backend.data_dir, exc)
    return backend
