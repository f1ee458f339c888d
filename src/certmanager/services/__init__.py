"""Reconciliation services: labels, classification, actions, deployment."""

from certmanager.services.classifier import StatusClassifier, classify
from certmanager.services.deployer import Deployer
from certmanager.services.domains import build_domain_set
from certmanager.services.engine import PassOptions, ReconciliationEngine, Snapshot
from certmanager.services.labels import LabelReader, parse_domains
from certmanager.services.reconciler import DomainLocks, Reconciler, ReconcileOptions
from certmanager.services.reload import ReloadDispatcher, classify_reload_command
from certmanager.services.scheduler import UpdateWorker
from certmanager.services.shutdown import ShutdownCoordinator

__all__ = [
    "Deployer",
    "DomainLocks",
    "LabelReader",
    "PassOptions",
    "ReconcileOptions",
    "Reconciler",
    "ReconciliationEngine",
    "ReloadDispatcher",
    "ShutdownCoordinator",
    "Snapshot",
    "StatusClassifier",
    "UpdateWorker",
    "build_domain_set",
    "classify",
    "classify_reload_command",
    "parse_domains",
]
