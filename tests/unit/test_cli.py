"""Unit tests for the dockrun command-line driver."""

import json
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import DockerException

from dockrun import cli
from dockrun.models.events import (
    CancelledByCaller,
    CommandNotStartable,
    Exited,
    KilledManually,
    RuntimeFault,
)


@pytest.fixture
def patched_cli(runtime):
    """Wire the CLI to the fake runtime without installing signal handlers."""
    factory = MagicMock()
    factory.return_value.create_runtime_client.return_value = runtime
    with patch.object(cli, "DockerClientFactory", factory), \
         patch.object(cli, "install_signal_handlers"), \
         patch.object(cli, "remove_signal_handlers"):
        yield factory


class TestExitCodes:
    """Test the mapping from termination reason to process exit status."""

    @pytest.mark.parametrize(
        "reason,code",
        [
            (Exited(0), 0),
            (Exited(3), 3),
            (KilledManually(), 137),
            (CommandNotStartable(), 127),
            (CancelledByCaller(), 130),
            (RuntimeFault("boom"), 1),
        ],
    )
    def test_exit_code_for(self, reason, code):
        assert cli.exit_code_for(reason) == code


class TestArguments:
    """Test argument parsing."""

    def test_missing_image_is_usage_error(self):
        with patch.object(cli, "setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["--bash-command", "echo hi"])

        assert exc_info.value.code == 2

    def test_flags(self):
        args = cli.build_parser().parse_args(
            ["--docker-image", "alpine:3.18", "--bash-command", "echo hi", "--json"]
        )
        assert args.docker_image == "alpine:3.18"
        assert args.bash_command == "echo hi"
        assert args.json is True


class TestRun:
    """Test a full run against the fake runtime."""

    @pytest.mark.asyncio
    async def test_streams_output_and_returns_exit_code(
        self, runtime, patched_cli, docker_config, capsys
    ):
        runtime.emit(b"hi\r\n")
        runtime.exit(0)

        code = await cli.run(
            "alpine:3.18", "echo hi && exit 0", cli.EventPrinter(), docker_config
        )

        assert code == 0
        assert capsys.readouterr().out == "hi\n"
        assert runtime.count("remove_container") == 1
        assert runtime.names()[-1] == "close"

    @pytest.mark.asyncio
    async def test_json_output(self, runtime, patched_cli, docker_config, capsys):
        runtime.emit(b"hi\n")
        runtime.exit(137)

        code = await cli.run(
            "alpine:3.18", "exit 137", cli.EventPrinter(json_output=True), docker_config
        )

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert code == 137
        assert lines[0] == {"event": "log", "text": "hi"}
        assert lines[-1]["event"] == "terminated"
        assert lines[-1]["reason"] == "killed_manually"

    @pytest.mark.asyncio
    async def test_image_not_found(self, runtime, patched_cli, docker_config, capsys):
        runtime.search_results = []

        code = await cli.run(
            "definitely-not-a-real-image",
            "true",
            cli.EventPrinter(json_output=True),
            docker_config,
        )

        output = json.loads(capsys.readouterr().out.strip())
        assert code == 1
        assert output["error_type"] == "image_not_found"
        assert "create_container" not in runtime.names()

    @pytest.mark.asyncio
    async def test_docker_unavailable(self, patched_cli, docker_config):
        patched_cli.return_value.create_runtime_client.side_effect = DockerException(
            "Error while fetching server API version"
        )

        code = await cli.run("alpine:3.18", "true", cli.EventPrinter(), docker_config)

        assert code == 1
