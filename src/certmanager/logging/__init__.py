"""Logging subsystem for the certificate manager.

Public API::

    from certmanager.logging import configure_logging

    configure_logging(settings.logging)
"""

from certmanager.logging.setup import configure_logging

__all__ = ["configure_logging"]
