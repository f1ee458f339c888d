"""Entity models for the certificate manager.

All models are frozen dataclasses except :class:`PassReport`, which a
pass fills in as it goes.  Use :func:`dataclasses.replace` to modify
the others (copy-on-write).
"""

from certmanager.models.certificate import CertificateRecord
from certmanager.models.container import ContainerTarget
from certmanager.models.domain import Domain
from certmanager.models.report import (
    ActionOutcome,
    ContainerDeployment,
    DeploymentOutcome,
    PassReport,
)

__all__ = [
    "ActionOutcome",
    "CertificateRecord",
    "ContainerDeployment",
    "ContainerTarget",
    "DeploymentOutcome",
    "Domain",
    "PassReport",
]
