"""Unit tests for reload command classification and dispatch."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from certmanager.core.errors import ContainerRuntimeError, ReloadError
from certmanager.core.types import ReloadContext
from certmanager.models import ContainerTarget
from certmanager.runtime.base import ExecResult
from certmanager.services.reload import (
    ReloadDispatcher,
    classify_reload_command,
    strip_quotes,
)

TARGET = ContainerTarget(id="abc123", domains=("example.com",), name="mail")


class TestStripQuotes:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ('"nginx -s reload"', "nginx -s reload"),
            ("'nginx -s reload'", "nginx -s reload"),
            ("nginx -s reload", "nginx -s reload"),
            ("\"'double'\"", "'double'"),
            ('"unbalanced', "unbalanced"),
        ],
    )
    def test_one_layer(self, raw, expected):
        assert strip_quotes(raw) == expected


class TestClassify:
    def test_docker_command_runs_on_host(self):
        context, argv = classify_reload_command("docker compose restart mail")

        assert context is ReloadContext.HOST
        assert argv == ["docker", "compose", "restart", "mail"]

    def test_quoted_docker_command(self):
        context, argv = classify_reload_command("'docker restart'")

        assert context is ReloadContext.HOST
        assert argv == ["docker", "restart"]

    def test_docker_compose_binary_runs_on_host(self):
        context, _ = classify_reload_command("docker-compose restart web")
        assert context is ReloadContext.HOST

    def test_other_commands_run_in_container_shell(self):
        context, argv = classify_reload_command("apachectl -k graceful")

        assert context is ReloadContext.CONTAINER
        assert argv == ["sh", "-c", "apachectl -k graceful"]

    def test_word_starting_with_docker_is_not_host(self):
        context, _ = classify_reload_command("dockerd-reload.sh")
        assert context is ReloadContext.CONTAINER

    def test_shell_metacharacters_stay_inside_the_container(self):
        _, argv = classify_reload_command("kill -HUP $(cat /run/nginx.pid)")
        assert argv == ["sh", "-c", "kill -HUP $(cat /run/nginx.pid)"]


class TestDispatch:
    def test_host_command_gets_container_id_appended(self):
        runtime = MagicMock()
        runtime.run_on_host.return_value = ExecResult(0)

        ran = ReloadDispatcher(runtime, timeout_seconds=60).dispatch(
            TARGET, "docker compose restart mail"
        )

        assert ran is True
        runtime.run_on_host.assert_called_once_with(
            ["docker", "compose", "restart", "mail", "abc123"],
            timeout=60,
        )
        runtime.exec_in_container.assert_not_called()

    def test_container_command_runs_via_shell(self):
        runtime = MagicMock()
        runtime.exec_in_container.return_value = ExecResult(0)

        ReloadDispatcher(runtime).dispatch(TARGET, "apachectl -k graceful")

        runtime.exec_in_container.assert_called_once_with(
            "abc123",
            ["sh", "-c", "apachectl -k graceful"],
        )
        runtime.run_on_host.assert_not_called()

    @pytest.mark.parametrize("command", [None, "", "''", '""'])
    def test_no_command_runs_nothing(self, command):
        runtime = MagicMock()

        assert ReloadDispatcher(runtime).dispatch(TARGET, command) is False
        runtime.exec_in_container.assert_not_called()
        runtime.run_on_host.assert_not_called()

    def test_non_zero_exit_raises(self):
        runtime = MagicMock()
        runtime.exec_in_container.return_value = ExecResult(1, stderr=b"config test failed")

        with pytest.raises(ReloadError, match="config test failed") as exc_info:
            ReloadDispatcher(runtime).dispatch(TARGET, "nginx -s reload")
        assert exc_info.value.container_id == "abc123"

    def test_timeout_raises(self):
        runtime = MagicMock()
        runtime.run_on_host.side_effect = ContainerRuntimeError("docker timed out", retryable=True)

        with pytest.raises(ReloadError, match="timed out"):
            ReloadDispatcher(runtime).dispatch(TARGET, "docker restart")

    def test_unparseable_host_command_raises(self):
        with pytest.raises(ReloadError, match="cannot parse"):
            ReloadDispatcher(MagicMock()).dispatch(TARGET, "docker exec 'unterminated")
