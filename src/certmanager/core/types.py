"""Enumerated types for the certificate manager.

All enums inherit from ``StrEnum`` so their ``.value`` is the plain
string used in labels, CLI options and JSON output.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Certificate lifecycle
# ---------------------------------------------------------------------------


class LifecycleStatus(StrEnum):
    """Per-pass classification of a domain's certificate."""

    MISSING = "missing"
    VALID = "valid"
    EXPIRED = "expired"
    UNUSED = "unused"


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class ArtifactKind(StrEnum):
    """Certificate-derived file forms that can be deployed.

    The value doubles as the file extension inside a container, so a
    ``crt`` artifact for ``example.com`` lands at
    ``<certificate_directory>/example.com.crt``.
    """

    CRT = "crt"
    KEY = "key"
    PEM = "pem"
    CA = "ca"
    CSR = "csr"

    def filename(self, domain: str) -> str:
        """Return the in-container file name for *domain*."""
        return f"{domain}.{self.value}"


DEFAULT_ARTIFACTS: frozenset[ArtifactKind] = frozenset(
    {ArtifactKind.CRT, ArtifactKind.KEY},
)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class ActionType(StrEnum):
    ISSUE = "issue"
    RENEW = "renew"
    REVOKE = "revoke"


class ActionResult(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"


class DeploymentResult(StrEnum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    BLOCKED = "blocked"
    FAILED = "failed"


class ReloadContext(StrEnum):
    """Where a reload command is executed."""

    HOST = "host"
    CONTAINER = "container"
