"""Exception taxonomy for the certificate manager.

Every error raised by the reconciliation engine or its collaborators
derives from :class:`CertManagerError`.  Only
:class:`ConfigurationError` is fatal; everything else is scoped to a
single domain or container and is collected into the pass report.
"""

from __future__ import annotations


class CertManagerError(Exception):
    """Base class for all certificate manager errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.

    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(CertManagerError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class AcmeClientError(CertManagerError):
    """Raised by an ACME client adapter when a call fails.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient (timeout, store unreadable).

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(detail)


class ContainerRuntimeError(CertManagerError):
    """Raised by a container runtime adapter when a call fails."""

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class TransientClassificationError(CertManagerError):
    """The certificate inventory could not be read for this pass."""


class DomainActionError(CertManagerError):
    """Base class for a failed issue / renew / revoke of one domain.

    Parameters
    ----------
    domain:
        The domain whose action failed.
    detail:
        Human-readable description of the failure.

    """

    action = ""

    def __init__(self, domain: str, detail: str) -> None:
        self.domain = domain
        super().__init__(f"{self.action} failed for {domain}: {detail}")


class IssuanceError(DomainActionError):
    action = "issue"


class RenewalError(DomainActionError):
    action = "renew"


class RevocationError(DomainActionError):
    action = "revoke"


class DeploymentBlockedError(CertManagerError):
    """No local certificate exists yet for a requested deployment."""

    def __init__(self, domain: str, container_id: str, missing: list[str]) -> None:
        self.domain = domain
        self.container_id = container_id
        self.missing = missing
        super().__init__(
            f"Certificate for {domain} has not been issued "
            f"(missing {', '.join(missing)}); skipping {container_id}",
        )


class ReloadError(CertManagerError):
    """The reload command of a container failed."""

    def __init__(self, container_id: str, detail: str) -> None:
        self.container_id = container_id
        super().__init__(f"Reload of {container_id} failed: {detail}")
