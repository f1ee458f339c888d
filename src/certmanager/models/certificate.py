"""Certificate record entity, as reported by the ACME client's store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from certmanager.core.types import ArtifactKind


@dataclass(frozen=True)
class CertificateRecord:
    domain: str
    issued_at: datetime | None
    renew_after: datetime | None
    sans: tuple[str, ...] = ()
    artifact_paths: Mapping[ArtifactKind, Path] = field(default_factory=dict)
    expires_at: datetime | None = None

    def local_artifact(self, kind: ArtifactKind) -> Path | None:
        """Return the local path of *kind* if the file exists on disk."""
        path = self.artifact_paths.get(kind)
        if path is None or not path.is_file():
            return None
        return path

    def renewal_due(self, now: datetime) -> bool:
        """True once *now* is on or after the renewal window opening."""
        return self.renew_after is not None and now >= self.renew_after
