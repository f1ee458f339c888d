"""Unit tests for the acme.sh adapter."""

from __future__ import annotations

import subprocess
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from certmanager.acme.acmesh import AcmeShClient
from certmanager.core.errors import AcmeClientError
from certmanager.core.types import ArtifactKind

LISTRAW = (
    "Main_Domain|KeyLength|SAN_Domains|Profile|CA|Created|Renew\n"
    "example.com|\"ec-256\"|no||LetsEncrypt.org|2026-05-01T10:00:00Z|2026-06-30T10:00:00Z\n"
    "mail.example.com|\"ec-256\"|smtp.example.com,imap.example.com||LetsEncrypt.org"
    "|2026-04-01T10:00:00Z|2026-05-31T10:00:00Z\n"
)


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


def _self_signed(path: Path, not_after: datetime) -> None:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))


@pytest.fixture()
def client(make_settings):
    return AcmeShClient(make_settings().acme)


@pytest.fixture()
def home(client) -> Path:
    path = Path(client.settings.home)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _argv(mock_run) -> list[list[str]]:
    return [c.args[0] for c in mock_run.call_args_list]


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class TestListCertificates:
    def test_parses_listraw(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(LISTRAW),
        ) as mock_run:
            records = client.list_certificates()

        assert list(records) == ["example.com", "mail.example.com"]
        main = records["example.com"]
        assert main.issued_at == datetime(2026, 5, 1, 10, 0, tzinfo=UTC)
        assert main.renew_after == datetime(2026, 6, 30, 10, 0, tzinfo=UTC)
        assert main.sans == ()
        assert records["mail.example.com"].sans == ("smtp.example.com", "imap.example.com")
        assert _argv(mock_run)[0][1:] == [
            "--config-home",
            client.settings.home,
            "--list",
            "--listraw",
        ]

    def test_empty_store(self, client):
        with patch("certmanager.acme.acmesh.subprocess.run", return_value=_completed("")):
            assert client.list_certificates() == {}

    def test_header_only(self, client):
        header = LISTRAW.splitlines()[0] + "\n"
        with patch("certmanager.acme.acmesh.subprocess.run", return_value=_completed(header)):
            assert client.list_certificates() == {}

    def test_unknown_header_is_retryable(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed("garbage output\n"),
        ):
            with pytest.raises(AcmeClientError) as exc_info:
                client.list_certificates()
        assert exc_info.value.retryable is True

    def test_unparseable_dates_are_none(self, client):
        output = "Main_Domain|Created|Renew\nexample.com|yesterday|\n"
        with patch("certmanager.acme.acmesh.subprocess.run", return_value=_completed(output)):
            record = client.list_certificates()["example.com"]
        assert record.issued_at is None
        assert record.renew_after is None

    def test_artifact_paths_and_expiry(self, client, home):
        directory = home / "example.com_ecc"
        directory.mkdir()
        not_after = datetime(2026, 8, 29, 10, 0, tzinfo=UTC)
        _self_signed(directory / "example.com.cer", not_after)

        with patch("certmanager.acme.acmesh.subprocess.run", return_value=_completed(LISTRAW)):
            records = client.list_certificates()

        main = records["example.com"]
        assert main.artifact_paths[ArtifactKind.PEM] == directory / "fullchain.cer"
        assert main.local_artifact(ArtifactKind.CRT) == directory / "example.com.cer"
        assert main.local_artifact(ArtifactKind.KEY) is None
        assert main.expires_at == not_after
        assert records["mail.example.com"].expires_at is None

    def test_rsa_directory_fallback(self, client, home):
        (home / "example.com").mkdir()

        assert client.certificate_directory("example.com") == home / "example.com"
        assert client.certificate_directory("other.com") == home / "other.com_ecc"


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------


class TestRun:
    def test_timeout_is_retryable(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            side_effect=subprocess.TimeoutExpired("acme.sh", 300),
        ):
            with pytest.raises(AcmeClientError, match="timed out after 300s") as exc_info:
                client.issue("example.com")
        assert exc_info.value.retryable is True

    def test_missing_binary(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            side_effect=FileNotFoundError("acme.sh"),
        ):
            with pytest.raises(AcmeClientError, match="Cannot execute acme.sh") as exc_info:
                client.renew("example.com")
        assert exc_info.value.retryable is False

    def test_non_zero_exit_includes_output(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(returncode=1, stderr="Error add txt for domain"),
        ):
            with pytest.raises(AcmeClientError, match="exited with 1: Error add txt"):
                client.issue("example.com")


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class TestActions:
    def test_issue_arguments(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(),
        ) as mock_run:
            client.issue("example.com")

        argv = _argv(mock_run)[0]
        assert argv[argv.index("--domain") + 1] == "example.com"
        assert argv[argv.index("--dns") + 1] == "dns_cf"
        assert argv[argv.index("--server") + 1] == "letsencrypt"
        assert "--staging" not in argv

    def test_staging_server(self, make_settings):
        client = AcmeShClient(make_settings(USE_STAGING_CA="true", DNS_PROVIDER="gandi_livedns").acme)
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(),
        ) as mock_run:
            client.issue("example.com")

        argv = _argv(mock_run)[0]
        assert argv[argv.index("--server") + 1] == "letsencrypt_test"
        assert argv[argv.index("--dns") + 1] == "dns_gandi_livedns"
        assert "--staging" in argv

    def test_prepare_sets_ca_and_registers(self, client):
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(),
        ) as mock_run:
            client.prepare()

        first, second = _argv(mock_run)
        assert "--set-default-ca" in first
        assert second[second.index("-m") + 1] == "admin@example.com"

    def test_renew_rsa_certificate_omits_ecc(self, client, home):
        (home / "example.com").mkdir()
        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(),
        ) as mock_run:
            client.renew("example.com")

        assert "--ecc" not in _argv(mock_run)[0]

    def test_revoke_removes_local_directory(self, client, home):
        directory = home / "old.example.com_ecc"
        directory.mkdir()
        (directory / "old.example.com.cer").write_text("cert")

        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(),
        ) as mock_run:
            client.revoke("old.example.com")

        revoke, remove = _argv(mock_run)
        assert "--revoke" in revoke
        assert "--ecc" in revoke
        assert "--remove" in remove
        assert not directory.exists()

    def test_failed_revoke_keeps_directory(self, client, home):
        directory = home / "old.example.com_ecc"
        directory.mkdir()

        with patch(
            "certmanager.acme.acmesh.subprocess.run",
            return_value=_completed(returncode=1, stderr="Revoke error"),
        ):
            with pytest.raises(AcmeClientError):
                client.revoke("old.example.com")

        assert directory.is_dir()
