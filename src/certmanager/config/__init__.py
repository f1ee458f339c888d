"""Configuration subsystem for the certificate manager.

Public API::

    from certmanager.config import load_settings

    settings = load_settings(os.environ)
    settings.acme.primary_domain        # typed access
"""

from certmanager.config.loader import load_settings
from certmanager.config.settings import (
    AcmeSettings,
    LabelSettings,
    LoggingSettings,
    RuntimeSettings,
    SchedulerSettings,
    Settings,
    build_settings,
)

__all__ = [
    "AcmeSettings",
    "LabelSettings",
    "LoggingSettings",
    "RuntimeSettings",
    "SchedulerSettings",
    "Settings",
    "build_settings",
    "load_settings",
]
