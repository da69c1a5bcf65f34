"""
Service layer abstraction.

Each service encapsulates the business logic of one domain on top of a
``StorageBackend`` and the shared TTL cache.  API handlers only talk to
services, so the backend can be swapped without touching them.
"""
