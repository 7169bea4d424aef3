from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest
from fakes.terminal import ScriptedShellChannel

from cloudgpu import cli
from cloudgpu.errors import AuthError, ExitCode
from cloudgpu.runtime.models import AssignedRuntime, ProxyEndpoint, RuntimeState, RuntimeStatus, Variant

READY = RuntimeStatus(
    runtime_id="rt-1",
    label="Colab GPU T4",
    variant=Variant.GPU,
    state=RuntimeState.READY,
    proxy=ProxyEndpoint(url="https://proxy.example", token="tok"),
)


class _Api:
    def __init__(self, runtimes: list[RuntimeStatus] | None = None, *, error: Exception | None = None) -> None:
        self.runtimes = list(runtimes or [])
        self.error = error
        self.created: list[Variant] = []

    def list_runtimes(self) -> list[RuntimeStatus]:
        if self.error is not None:
            raise self.error
        return list(self.runtimes)

    def create_runtime(self, variant: Variant) -> RuntimeStatus:
        self.created.append(variant)
        return RuntimeStatus(
            runtime_id="rt-new",
            label=f"Colab {variant.value}",
            variant=variant,
            state=RuntimeState.READY,
            proxy=ProxyEndpoint(url="https://new.example", token="tok"),
        )

    def get_runtime(self, runtime_id: str) -> RuntimeStatus:
        raise AssertionError("ready runtimes must not be polled")


def _services(api: _Api, channels: list[ScriptedShellChannel], runtimes: list[AssignedRuntime]) -> cli.Services:
    def channel_factory(runtime: AssignedRuntime) -> ScriptedShellChannel:
        runtimes.append(runtime)
        return channels.pop(0)

    return cli.Services(api=lambda _config: api, channel=channel_factory, progress=lambda _message: None)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text('api_url = "https://api.example"\naccess_token = "t"\n', encoding="utf-8")
    return path


def test_cli_help_includes_public_commands() -> None:
    help_text = cli.build_parser().format_help()
    assert "connect" in help_text
    assert "run" in help_text
    assert "status" in help_text
    assert "--log-level" in help_text


def test_run_returns_remote_exit_code(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    channel = ScriptedShellChannel(["hi\r\n"], exit_code=3)
    seen: list[AssignedRuntime] = []

    code = cli.main(
        ["--config", str(config_path), "run", "echo", "hi"],
        services=_services(_Api([READY]), [channel], seen),
    )

    assert code == 3
    assert capsys.readouterr().out == "hi\n"
    assert seen[0].runtime_id == "rt-1"


def test_run_with_flags_before_command(config_path: Path) -> None:
    api = _Api([READY])
    channel = ScriptedShellChannel([], exit_code=0)
    seen: list[AssignedRuntime] = []

    code = cli.main(
        ["--config", str(config_path), "run", "--new-runtime", "--tpu", "nvidia-smi", "-L"],
        services=_services(api, [channel], seen),
    )

    assert code == 0
    assert api.created == [Variant.TPU]
    assert "nvidia-smi -L" in channel.sent[0].text


def test_run_without_command_fails_before_network(config_path: Path) -> None:
    api = _Api(error=AssertionError("network touched"))
    stream = io.StringIO()

    with redirect_stderr(stream):
        code = cli.main(["--config", str(config_path), "run"], services=_services(api, [], []))

    assert code == int(ExitCode.VALIDATION_ERROR)
    assert "No command provided" in stream.getvalue()


def test_conflicting_variant_flags_are_rejected(config_path: Path) -> None:
    stream = io.StringIO()

    with redirect_stderr(stream):
        code = cli.main(
            ["--config", str(config_path), "run", "--tpu", "--cpu", "true"],
            services=_services(_Api([READY]), [], []),
        )

    assert code == int(ExitCode.INVALID_ARGS)
    assert "Choose either --cpu or --tpu" in stream.getvalue()


def test_auth_failure_prints_single_message(config_path: Path) -> None:
    stream = io.StringIO()

    with redirect_stderr(stream):
        code = cli.main(
            ["--config", str(config_path), "status"],
            services=_services(_Api(error=AuthError("Access token was rejected")), [], []),
        )

    assert code == int(ExitCode.AUTH_ERROR)
    assert stream.getvalue().count("Error:") == 1


def test_status_lists_runtimes(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--config", str(config_path), "status"], services=_services(_Api([READY]), [], []))

    assert code == 0
    assert "rt-1\tColab GPU T4\tGPU\tREADY" in capsys.readouterr().out


def test_invalid_log_level_returns_usage_error() -> None:
    with redirect_stderr(io.StringIO()):
        assert cli.main(["--log-level", "loud", "status"]) == 2


def test_missing_subcommand_returns_usage_error() -> None:
    with redirect_stderr(io.StringIO()):
        assert cli.main([]) == 2


def test_default_variant_comes_from_config(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('default_variant = "cpu"\n', encoding="utf-8")
    api = _Api()
    channel = ScriptedShellChannel([], exit_code=0)

    code = cli.main(["--config", str(path), "run", "true"], services=_services(api, [channel], []))

    assert code == 0
    assert api.created == [Variant.DEFAULT]
