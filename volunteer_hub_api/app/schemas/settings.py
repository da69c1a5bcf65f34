"""
System-wide settings.

There is a single settings object per installation.  When none has
been saved yet the defaults below are used as-is.
"""

from typing import Optional

from . import CamelModel
from .event import LandingPageTheme


class SystemSettings(CamelModel):
    google_auth_enabled: bool = False
    google_client_id: str = ""
    google_client_secret: str = ""
    facebook_auth_enabled: bool = False
    facebook_app_id: str = ""
    facebook_app_secret: str = ""
    email_auth_enabled: bool = True
    landing_page_theme: Optional[LandingPageTheme] = None
    organization_name: str = "Volunteer Hub"
    organization_logo: str = ""
    primary_color: str = "#0ea5e9"
    allow_public_event_viewing: bool = False
