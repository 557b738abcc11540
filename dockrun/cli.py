"""
dockrun - run one command in a fresh Docker container.

Usage:
  dockrun --docker-image alpine:3.18 --bash-command "echo hi && exit 0"
  dockrun --docker-image python:3.12-slim --bash-command "python -V" --json

Container output is written to stdout as it arrives. Status messages go to
stderr. Ctrl-C (or SIGTERM) stops and removes the container.

Exit status mirrors the container: its exit code when it exits on its own,
137 when killed, 127 when the command cannot start, 130 when cancelled and 1
for runtime or setup errors.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog
from docker.errors import DockerException
from requests.exceptions import RequestException
from rich.console import Console

from .config import DockerConfig, settings
from .models.errors import ContainerRunnerException
from .models.events import (
    CancelledByCaller,
    LogLine,
    RuntimeFault,
    Terminated,
    TerminationReason,
)
from .services.container import (
    CleanupCoordinator,
    ContainerHandle,
    DockerClientFactory,
    run_in_executor,
)
from .utils.logging import setup_logging
from .utils.shutdown import install_signal_handlers, remove_signal_handlers

logger = structlog.get_logger(__name__)

EXIT_CANCELLED = 130
EXIT_FAILURE = 1

console = Console(stderr=True)


def exit_code_for(reason: TerminationReason) -> int:
    """Process exit status for a termination reason."""
    if isinstance(reason, CancelledByCaller):
        return EXIT_CANCELLED
    if isinstance(reason, RuntimeFault):
        return EXIT_FAILURE
    return reason.code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dockrun",
        description="Run a shell command in a fresh Docker container and stream its output.",
    )
    parser.add_argument("--docker-image", default="", help="A name of a Docker image")
    parser.add_argument(
        "--bash-command",
        default="",
        help="A shell command (to run inside this Docker image)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit events as JSON lines on stdout",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument(
        "--log-format", choices=["console", "json"], default=None, help="Override LOG_FORMAT"
    )
    return parser


class EventPrinter:
    """Writes events to stdout (raw or JSON lines) and status to stderr."""

    def __init__(self, json_output: bool = False):
        self.json_output = json_output

    def log_line(self, event: LogLine) -> None:
        if self.json_output:
            self._emit(event.to_dict())
        else:
            sys.stdout.write(event.text + "\n")
            sys.stdout.flush()

    def terminated(self, event: Terminated, container_id: Optional[str]) -> None:
        if self.json_output:
            self._emit(event.to_dict(container_id))
            return
        style = "green" if exit_code_for(event.reason) == 0 else "yellow"
        if isinstance(event.reason, RuntimeFault):
            style = "red"
        console.print(event.reason.describe(container_id), style=style, markup=False)

    def error(self, error: ContainerRunnerException) -> None:
        if self.json_output:
            self._emit({"event": "error", **error.to_dict()})
        else:
            console.print(f"[red]Error:[/red] {error.message}")

    def _emit(self, data: dict) -> None:
        sys.stdout.write(json.dumps(data) + "\n")
        sys.stdout.flush()


async def run(
    image: str,
    command: str,
    printer: EventPrinter,
    config: Optional[DockerConfig] = None,
) -> int:
    """Run ``command`` in a container from ``image`` until it terminates."""
    config = config or settings.docker
    scope = asyncio.Event()
    install_signal_handlers(scope)
    try:
        try:
            client = await run_in_executor(
                DockerClientFactory(config).create_runtime_client
            )
        except (DockerException, RequestException) as e:
            console.print(f"[red]Error:[/red] Cannot connect to Docker: {e}")
            return EXIT_FAILURE

        try:
            return await _run_container(scope, image, command, client, printer, config)
        finally:
            client.close()
    finally:
        remove_signal_handlers()


async def _run_container(scope, image, command, client, printer, config) -> int:
    cleanup = CleanupCoordinator(client)
    async with ContainerHandle(
        scope, image, command, client=client, cleanup=cleanup, config=config
    ) as handle:
        try:
            await handle.create()
            if scope.is_set():
                printer.terminated(Terminated(CancelledByCaller()), handle.container_id)
                return EXIT_CANCELLED
            await handle.start()
        except ContainerRunnerException as e:
            logger.error("Container setup failed", error_type=e.error_type.value, error=e.message)
            printer.error(e)
            return EXIT_FAILURE

        async for event in handle.events():
            if isinstance(event, LogLine):
                printer.log_line(event)
            else:
                printer.terminated(event, handle.container_id)
                return exit_code_for(event.reason)
    return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        settings.log_level = args.log_level.upper()
    if args.log_format:
        settings.log_format = args.log_format
    setup_logging()

    if not args.docker_image:
        parser.error("Cannot start without a docker image name")

    printer = EventPrinter(json_output=args.json)
    return asyncio.run(run(args.docker_image, args.bash_command, printer))


if __name__ == "__main__":
    sys.exit(main())
