"""ACME client adapter for acme.sh.

Drives the ``acme.sh`` shell client with argument lists (never a
shell string) and parses its ``--list --listraw`` table into
:class:`CertificateRecord` objects.

acme.sh keeps one directory per certificate under its config home,
named ``<domain>_ecc`` for ECDSA keys (the default) or ``<domain>``
for RSA keys::

    /acme.sh/example.com_ecc/
        example.com.cer     leaf certificate        -> crt
        example.com.key     private key             -> key
        fullchain.cer       leaf + intermediates    -> pem
        ca.cer              intermediates           -> ca
        example.com.csr     signing request         -> csr
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from certmanager.acme.base import AcmeClient
from certmanager.core.errors import AcmeClientError
from certmanager.core.types import ArtifactKind
from certmanager.models import CertificateRecord

if TYPE_CHECKING:
    from certmanager.config.settings import AcmeSettings

log = logging.getLogger(__name__)

_STAGING_SERVER = "letsencrypt_test"

# Trailing output kept in error messages
_STDERR_TAIL = 500


def _artifact_files(domain: str) -> dict[ArtifactKind, str]:
    return {
        ArtifactKind.CRT: f"{domain}.cer",
        ArtifactKind.KEY: f"{domain}.key",
        ArtifactKind.PEM: "fullchain.cer",
        ArtifactKind.CA: "ca.cer",
        ArtifactKind.CSR: f"{domain}.csr",
    }


def _column(cols: list[str], idx: int | None) -> str:
    if idx is None or idx >= len(cols):
        return ""
    return cols[idx].strip()


def _parse_timestamp(value: str) -> datetime | None:
    """Parse an acme.sh ``Created``/``Renew`` column value."""
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        log.debug("Unparseable acme.sh timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _read_not_after(path: Path) -> datetime | None:
    """Return the leaf certificate's expiry, or None if unreadable."""
    from cryptography.x509 import load_pem_x509_certificate  # noqa: PLC0415

    try:
        cert = load_pem_x509_certificate(path.read_bytes())
    except (OSError, ValueError):
        log.debug("Cannot read certificate %s", path, exc_info=True)
        return None
    return cert.not_valid_after_utc


class AcmeShClient(AcmeClient):
    """Adapter for the acme.sh command-line client.

    acme.sh is not safe for concurrent invocation against the same
    config home; callers serialise through the reconciler's action
    executor unless ``ACME_CONCURRENT`` is set.

    Parameters
    ----------
    settings:
        The ``acme`` configuration section.

    """

    def __init__(self, settings: AcmeSettings) -> None:
        super().__init__(settings)
        self._home = Path(settings.home)

    # -- command execution --------------------------------------------------

    def _server(self) -> str:
        if self._settings.use_staging_ca:
            return _STAGING_SERVER
        return self._settings.certificate_authority

    def _dns_hook(self) -> str:
        provider = self._settings.dns_provider
        return provider if provider.startswith("dns_") else f"dns_{provider}"

    def _run(self, *args: str) -> str:
        """Run acme.sh with *args* and return its stdout.

        Raises
        ------
        AcmeClientError
            On a non-zero exit, a missing binary, or a timeout.

        """
        cmd = [self._settings.binary, "--config-home", str(self._home), *args]
        log.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(  # noqa: S603
                cmd,
                check=False,
                timeout=self._settings.timeout_seconds,
                capture_output=True,
                text=True,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"acme.sh {args[0]} timed out after {self._settings.timeout_seconds}s"
            raise AcmeClientError(msg, retryable=True) from exc
        except OSError as exc:
            msg = f"Cannot execute {self._settings.binary}: {exc}"
            raise AcmeClientError(msg) from exc

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            msg = f"acme.sh {args[0]} exited with {result.returncode}: {output[-_STDERR_TAIL:]}"
            raise AcmeClientError(msg)
        return result.stdout

    # -- AcmeClient ---------------------------------------------------------

    def prepare(self) -> None:
        """Set the default CA and register the ACME account."""
        self._run("--set-default-ca", "--server", self._server())
        self._run(
            "--register-account",
            "-m",
            self._settings.contact_email,
            "--server",
            self._server(),
        )
        log.info(
            "Registered %s with CA %s",
            self._settings.contact_email,
            self._server(),
        )

    def list_certificates(self) -> dict[str, CertificateRecord]:
        """Parse ``acme.sh --list --listraw`` into records.

        The table header names the columns, so the parser copes with
        acme.sh versions that add columns (e.g. ``Profile``).
        """
        output = self._run("--list", "--listraw")
        lines = [line for line in output.splitlines() if line.strip()]
        if not lines:
            return {}

        header = [h.strip() for h in lines[0].split("|")]
        try:
            i_domain = header.index("Main_Domain")
        except ValueError as exc:
            msg = f"Unrecognised acme.sh list header: {lines[0]!r}"
            raise AcmeClientError(msg, retryable=True) from exc
        i_sans = header.index("SAN_Domains") if "SAN_Domains" in header else None
        i_created = header.index("Created") if "Created" in header else None
        i_renew = header.index("Renew") if "Renew" in header else None

        records: dict[str, CertificateRecord] = {}
        for line in lines[1:]:
            cols = line.split("|")
            domain = _column(cols, i_domain)
            if not domain:
                continue
            sans_raw = _column(cols, i_sans)
            sans = tuple(
                s.strip() for s in sans_raw.split(",") if s.strip() and sans_raw != "no"
            )
            records[domain] = self._build_record(
                domain,
                issued_at=_parse_timestamp(_column(cols, i_created)),
                renew_after=_parse_timestamp(_column(cols, i_renew)),
                sans=sans,
            )
        return records

    def _build_record(
        self,
        domain: str,
        *,
        issued_at: datetime | None,
        renew_after: datetime | None,
        sans: tuple[str, ...],
    ) -> CertificateRecord:
        directory = self.certificate_directory(domain)
        paths = {kind: directory / name for kind, name in _artifact_files(domain).items()}
        crt = paths[ArtifactKind.CRT]
        return CertificateRecord(
            domain=domain,
            issued_at=issued_at,
            renew_after=renew_after,
            sans=sans,
            artifact_paths=paths,
            expires_at=_read_not_after(crt) if crt.is_file() else None,
        )

    def certificate_directory(self, domain: str) -> Path:
        """Return the local directory holding *domain*'s artifacts."""
        ecc = self._home / f"{domain}_ecc"
        rsa = self._home / domain
        if not ecc.is_dir() and rsa.is_dir():
            return rsa
        return ecc

    def issue(self, domain: str) -> None:
        log.info("Issuing certificate for %s", domain, extra={"domain": domain})
        args = [
            "--issue",
            "--domain",
            domain,
            "--dns",
            self._dns_hook(),
            "--server",
            self._server(),
            "--debug",
            "0",
            "--force",
        ]
        if self._settings.use_staging_ca:
            args.append("--staging")
        self._run(*args)

    def renew(self, domain: str) -> None:
        log.info("Renewing certificate for %s", domain, extra={"domain": domain})
        args = ["--renew", "--domain", domain, "--force", "--debug", "0"]
        if self.certificate_directory(domain).name.endswith("_ecc"):
            args.append("--ecc")
        self._run(*args)

    def revoke(self, domain: str) -> None:
        log.info("Revoking certificate for %s", domain, extra={"domain": domain})
        ecc = ["--ecc"] if self.certificate_directory(domain).name.endswith("_ecc") else []
        self._run("--revoke", "--domain", domain, *ecc)
        self._run("--remove", "--domain", domain, *ecc)
        self._remove_directory(domain)

    def _remove_directory(self, domain: str) -> None:
        for directory in (self._home / f"{domain}_ecc", self._home / domain):
            if directory.is_dir():
                log.debug("Removing %s", directory, extra={"domain": domain})
                try:
                    shutil.rmtree(directory)
                except OSError as exc:
                    msg = f"Cannot remove {directory}: {exc}"
                    raise AcmeClientError(msg) from exc
