"""
HTTP API of the volunteer hub.

``router`` in ``api.router`` includes every domain router found in
``api.endpoints``; ``main.create_app`` mounts it under ``/api``.
"""
