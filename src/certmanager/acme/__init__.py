"""ACME client collaborator.

Exports the abstract adapter interface and the acme.sh adapter.
"""

from certmanager.acme.acmesh import AcmeShClient
from certmanager.acme.base import AcmeClient

__all__ = [
    "AcmeClient",
    "AcmeShClient",
]
