"""
Application package initializer.

This package contains the main entrypoint for the API and all of its
submodules.  The data layer lives in ``core`` (configuration, cache,
codec, capacity rules, errors), ``storage`` (the two backends) and
``services`` (cache-aside data services and the sign-up, fan-out and
inbox flows).  ``api`` exposes it over HTTP.
"""

from .main import app  # noqa: F401
