"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .auth import StaticTokenProvider
from .config import AppConfig, load_config
from .errors import CloudGpuError, EmptyCommandError, ExitCode, user_facing_error
from .logging import configure_logging, default_log_path
from .runtime import AssignedRuntime, AssignOptions, HttpRuntimeApi, RuntimeApi, RuntimeManager, Variant
from .runtime.manager import ProgressSink
from .shell import build_posix_command
from .terminal import CommandExecutor, InteractiveSession, TerminalChannel

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_INTERRUPTED_EXIT_CODE = 130


@dataclass
class Services:
    """Factories the commands use; tests swap these for fakes."""

    api: Callable[[AppConfig], RuntimeApi]
    channel: Callable[[AssignedRuntime], TerminalChannel]
    progress: ProgressSink | None = None


def _default_api(config: AppConfig) -> HttpRuntimeApi:
    return HttpRuntimeApi(config.api_url, StaticTokenProvider(config.access_token))


def default_services() -> Services:
    return Services(api=_default_api, channel=TerminalChannel)


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _add_runtime_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--new-runtime",
        action="store_true",
        help="Request a brand-new runtime instead of reusing an existing one",
    )
    parser.add_argument("--tpu", action="store_true", help="Request a TPU runtime instead of a GPU")
    parser.add_argument("--cpu", action="store_true", help="Request a CPU-only runtime instead of a GPU")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cloudgpu", description="Cloud GPU runtime shell")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Path to config file")
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    connect = commands.add_parser("connect", help="Open an interactive terminal on a runtime")
    _add_runtime_options(connect)
    connect.add_argument(
        "--startup-command",
        default=None,
        help="Command to run after the remote terminal attaches",
    )

    run_cmd = commands.add_parser("run", help="Run a command on a runtime and stream the output")
    _add_runtime_options(run_cmd)
    run_cmd.add_argument("-v", "--verbose", action="store_true", help="Show shell plumbing and progress")
    run_cmd.add_argument("remote_command", nargs=argparse.REMAINDER, help="Command to run remotely")

    commands.add_parser("status", help="List runtimes visible to the current credentials")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_variant(namespace: argparse.Namespace, config: AppConfig) -> Variant:
    tpu = bool(getattr(namespace, "tpu", False))
    cpu = bool(getattr(namespace, "cpu", False))
    if tpu and cpu:
        raise CloudGpuError(
            "Conflicting accelerator flags.",
            code=ExitCode.INVALID_ARGS,
            hint="Choose either --cpu or --tpu, not both.",
        )
    if tpu:
        return Variant.TPU
    if cpu:
        return Variant.DEFAULT
    return Variant.from_name(config.default_variant)


def _assign(
    namespace: argparse.Namespace,
    config: AppConfig,
    services: Services,
    *,
    quiet: bool,
) -> AssignedRuntime:
    manager = RuntimeManager(services.api(config), policy=config.poll_policy(), progress=services.progress)
    return manager.assign(
        AssignOptions(
            force_new=bool(namespace.new_runtime),
            variant=resolve_variant(namespace, config),
            quiet=quiet,
        )
    )


def run_command(namespace: argparse.Namespace, config: AppConfig, services: Services) -> int:
    args = list(namespace.remote_command)
    if args and args[0] == "--":
        args = args[1:]
    command = build_posix_command(args)
    verbose = bool(namespace.verbose)
    # Validate before any network activity.
    if not command.strip():
        raise EmptyCommandError("No command provided")
    runtime = _assign(namespace, config, services, quiet=not verbose)
    executor = CommandExecutor(services.channel(runtime), verbose=verbose, label=runtime.label)
    return executor.run(command)


def connect_command(namespace: argparse.Namespace, config: AppConfig, services: Services) -> int:
    runtime = _assign(namespace, config, services, quiet=False)
    startup = namespace.startup_command if namespace.startup_command is not None else config.startup_command

    def announce() -> None:
        print(f"Connected to {runtime.label}. Type ~. on a new line to disconnect.", file=sys.stderr)

    session = InteractiveSession(services.channel(runtime), startup_command=startup, on_connected=announce)
    session.start()
    return int(ExitCode.SUCCESS)


def status_command(namespace: argparse.Namespace, config: AppConfig, services: Services) -> int:
    del namespace
    runtimes = services.api(config).list_runtimes()
    if not runtimes:
        print("No active runtimes.")
        return int(ExitCode.SUCCESS)
    for status in runtimes:
        print(f"{status.runtime_id}\t{status.label}\t{status.variant.value}\t{status.state.value}")
    return int(ExitCode.SUCCESS)


_COMMANDS: dict[str, Callable[[argparse.Namespace, AppConfig, Services], int]] = {
    "connect": connect_command,
    "run": run_command,
    "status": status_command,
}


def main(
    argv: Sequence[str] | None = None,
    *,
    services: Services | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.debug("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    level = namespace.log_level
    if getattr(namespace, "verbose", False) and level in {"WARN", "ERROR"}:
        level = "INFO"
    logger = configure_logging(level=level, log_file=log_path)

    try:
        config = load_config(namespace.config)
        logger.debug("Dispatching command=%s api=%s", namespace.command, config.api_url)
        handler = _COMMANDS[namespace.command]
        return handler(namespace, config, services or default_services())
    except CloudGpuError as exc:
        logger.debug(
            "Handled CloudGpuError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        print(user_facing_error("Interrupted"), file=sys.stderr)
        return _INTERRUPTED_EXIT_CODE
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
