"""Container deployment target entity."""

from __future__ import annotations

from dataclasses import dataclass, field

from certmanager.core.types import DEFAULT_ARTIFACTS, ArtifactKind


@dataclass(frozen=True)
class ContainerTarget:
    """A running container that requests certificates via labels.

    Built fresh from the container runtime on every pass.
    """

    id: str
    domains: tuple[str, ...] = ()
    certificate_directory: str = "/certs"
    requested_artifacts: frozenset[ArtifactKind] = field(
        default_factory=lambda: DEFAULT_ARTIFACTS,
    )
    reload_command: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id[:12]

    def remote_path(self, domain: str, kind: ArtifactKind) -> str:
        """Return the in-container path of *kind* for *domain*."""
        return f"{self.certificate_directory.rstrip('/')}/{kind.filename(domain)}"
