"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
The builders read a flat mapping of option names (the environment
variable names, e.g. ``PRIMARY_DOMAIN``) that :mod:`.loader` has
already merged from the environment and the optional YAML file.

Access pattern::

    from certmanager.config import load_settings

    settings = load_settings(os.environ)
    print(settings.acme.primary_domain, settings.labels.domains)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from certmanager.core.types import ArtifactKind

if TYPE_CHECKING:
    from collections.abc import Mapping

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})

# Every option recognised by the builders below.  The loader only
# picks these names out of the process environment.
KNOWN_OPTIONS = (
    "PRIMARY_DOMAIN",
    "CONTACT_EMAIL",
    "DNS_PROVIDER",
    "USE_STAGING_CA",
    "CERTIFICATE_AUTHORITY",
    "ACME_HOME",
    "ACME_BINARY",
    "ACME_TIMEOUT",
    "ACME_CONCURRENT",
    "DOMAINS_LABEL",
    "CERTIFICATE_PATH_LABEL",
    "RELOAD_COMMAND_LABEL",
    "DEPLOY_LABEL",
    "DEFAULT_CERTIFICATE_PATH",
    "DEFAULT_DEPLOYMENT",
    "DOCKER_BINARY",
    "DOCKER_TIMEOUT",
    "RELOAD_TIMEOUT",
    "UPDATE_INTERVAL",
    "MAX_WORKERS",
    "PID_FILE",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


def parse_bool(value: Any, name: str) -> bool:  # noqa: ANN401
    """Interpret a config value as a boolean.

    Raises
    ------
    ValueError
        If the value is not a recognised boolean spelling.

    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    msg = f"{name} must be a boolean (true/false), got {value!r}"
    raise ValueError(msg)


def parse_int(value: Any, name: str, *, minimum: int = 1) -> int:  # noqa: ANN401
    """Interpret a config value as an integer no smaller than *minimum*."""
    try:
        number = int(str(value).strip())
    except ValueError:
        msg = f"{name} must be an integer, got {value!r}"
        raise ValueError(msg) from None
    if number < minimum:
        msg = f"{name} must be >= {minimum}, got {number}"
        raise ValueError(msg)
    return number


def parse_artifacts(value: str) -> tuple[frozenset[ArtifactKind], list[str]]:
    """Split a comma-separated artifact list into known kinds.

    Returns the recognised kinds and the list of unrecognised entries.
    Blank entries are ignored.
    """
    kinds: set[ArtifactKind] = set()
    unknown: list[str] = []
    for raw in value.split(","):
        item = raw.strip().lower()
        if not item:
            continue
        try:
            kinds.add(ArtifactKind(item))
        except ValueError:
            unknown.append(item)
    return frozenset(kinds), unknown


# ---------------------------------------------------------------------------
# ACME client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """External ACME client configuration (account, CA, store)."""

    primary_domain: str
    contact_email: str
    dns_provider: str
    use_staging_ca: bool
    certificate_authority: str
    home: str
    binary: str
    timeout_seconds: int
    concurrent: bool


def _build_acme(d: Mapping[str, Any]) -> AcmeSettings:
    return AcmeSettings(
        primary_domain=str(d.get("PRIMARY_DOMAIN", "")).strip(),
        contact_email=str(d.get("CONTACT_EMAIL", "")).strip(),
        dns_provider=str(d.get("DNS_PROVIDER", "")).strip(),
        use_staging_ca=parse_bool(d.get("USE_STAGING_CA", False), "USE_STAGING_CA"),
        certificate_authority=str(d.get("CERTIFICATE_AUTHORITY", "letsencrypt")),
        home=str(d.get("ACME_HOME", "/acme.sh")),
        binary=str(d.get("ACME_BINARY", "acme.sh")),
        timeout_seconds=parse_int(d.get("ACME_TIMEOUT", 300), "ACME_TIMEOUT"),
        concurrent=parse_bool(d.get("ACME_CONCURRENT", False), "ACME_CONCURRENT"),
    )


# ---------------------------------------------------------------------------
# Container labels
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LabelSettings:
    """Label keys read from managed containers, and their defaults."""

    domains: str
    certificate_path: str
    reload_command: str
    deploy: str
    default_certificate_path: str
    default_artifacts: frozenset[ArtifactKind]


def _build_labels(d: Mapping[str, Any]) -> LabelSettings:
    default_deployment = str(d.get("DEFAULT_DEPLOYMENT", "crt,key"))
    kinds, unknown = parse_artifacts(default_deployment)
    if unknown or not kinds:
        msg = (
            "DEFAULT_DEPLOYMENT must list artifact kinds from "
            f"{sorted(k.value for k in ArtifactKind)}, got {default_deployment!r}"
        )
        raise ValueError(msg)
    return LabelSettings(
        domains=str(d.get("DOMAINS_LABEL", "sh.acme.domains")),
        certificate_path=str(d.get("CERTIFICATE_PATH_LABEL", "sh.acme.certificate_path")),
        reload_command=str(d.get("RELOAD_COMMAND_LABEL", "sh.acme.reload_command")),
        deploy=str(d.get("DEPLOY_LABEL", "sh.acme.deploy")),
        default_certificate_path=str(d.get("DEFAULT_CERTIFICATE_PATH", "/certs")),
        default_artifacts=kinds,
    )


# ---------------------------------------------------------------------------
# Container runtime
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuntimeSettings:
    """Container runtime CLI and reload execution settings."""

    binary: str
    timeout_seconds: int
    reload_timeout_seconds: int


def _build_runtime(d: Mapping[str, Any]) -> RuntimeSettings:
    return RuntimeSettings(
        binary=str(d.get("DOCKER_BINARY", "docker")),
        timeout_seconds=parse_int(d.get("DOCKER_TIMEOUT", 30), "DOCKER_TIMEOUT"),
        reload_timeout_seconds=parse_int(d.get("RELOAD_TIMEOUT", 120), "RELOAD_TIMEOUT"),
    )


# ---------------------------------------------------------------------------
# Scheduler / service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchedulerSettings:
    """Periodic update and service process settings."""

    interval_seconds: int
    max_workers: int
    pid_file: str


def _build_scheduler(d: Mapping[str, Any]) -> SchedulerSettings:
    return SchedulerSettings(
        interval_seconds=parse_int(d.get("UPDATE_INTERVAL", 86400), "UPDATE_INTERVAL"),
        max_workers=parse_int(d.get("MAX_WORKERS", 4), "MAX_WORKERS"),
        pid_file=str(d.get("PID_FILE", "/run/certificate-manager.pid")),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(d: Mapping[str, Any]) -> LoggingSettings:
    fmt = str(d.get("LOG_FORMAT", "text")).lower()
    if fmt not in ("text", "json"):
        msg = f"LOG_FORMAT must be 'text' or 'json', got {fmt!r}"
        raise ValueError(msg)
    return LoggingSettings(
        level=str(d.get("LOG_LEVEL", "INFO")).upper(),
        format=fmt,
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    acme: AcmeSettings
    labels: LabelSettings
    runtime: RuntimeSettings
    scheduler: SchedulerSettings
    logging: LoggingSettings


_BUILDERS = (
    ("acme", _build_acme),
    ("labels", _build_labels),
    ("runtime", _build_runtime),
    ("scheduler", _build_scheduler),
    ("logging", _build_logging),
)


def build_settings(data: Mapping[str, Any]) -> tuple[Settings | None, list[str]]:
    """Build the full typed settings tree from merged option values.

    Every section is built even when an earlier one fails so that all
    problems are reported together.

    Returns
    -------
    tuple
        The settings (``None`` if any section failed) and the list of
        error messages.

    """
    sections: dict[str, Any] = {}
    errors: list[str] = []
    for name, builder in _BUILDERS:
        try:
            sections[name] = builder(data)
        except ValueError as exc:
            errors.append(str(exc))
    if errors:
        return None, errors
    return Settings(**sections), errors
