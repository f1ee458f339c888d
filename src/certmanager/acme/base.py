"""Abstract base class for ACME client adapters.

The reconciliation engine never speaks the ACME protocol itself.  It
drives an external client through this interface and reads the
client's certificate store back as typed
:class:`~certmanager.models.CertificateRecord` objects.  Everything
specific to a client's command line or on-disk format lives in the
adapter.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certmanager.config.settings import AcmeSettings
    from certmanager.models import CertificateRecord


class AcmeClient(abc.ABC):
    """Base class for all ACME client adapters.

    Subclasses raise :class:`~certmanager.core.errors.AcmeClientError`
    from every method on failure, including timeouts.

    Parameters
    ----------
    settings:
        The ``acme`` configuration section.

    """

    def __init__(self, settings: AcmeSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> AcmeSettings:
        return self._settings

    def prepare(self) -> None:  # noqa: B027
        """Select the CA and register the account before any action.

        The default implementation does nothing.
        """

    @abc.abstractmethod
    def list_certificates(self) -> dict[str, CertificateRecord]:
        """Return the client's certificate inventory keyed by domain."""

    @abc.abstractmethod
    def issue(self, domain: str) -> None:
        """Issue a new certificate for *domain* via DNS-01."""

    @abc.abstractmethod
    def renew(self, domain: str) -> None:
        """Renew the existing certificate for *domain*."""

    @abc.abstractmethod
    def revoke(self, domain: str) -> None:
        """Revoke the certificate for *domain* and delete its local files."""
