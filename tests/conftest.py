from __future__ import annotations

import logging as py_logging
from collections.abc import Iterator
from pathlib import Path

import pytest

_CRITICAL_TEST_FILES = {
    "test_command_executor.py",
    "test_line_processor.py",
    "test_runtime_manager.py",
}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        name = path.name

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        if name in _CRITICAL_TEST_FILES:
            item.add_marker(pytest.mark.critical_regression)


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("CLOUDGPU_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("CLOUDGPU_API_URL", raising=False)


@pytest.fixture(autouse=True)
def _reset_cloudgpu_logger() -> Iterator[None]:
    yield
    logger = py_logging.getLogger("cloudgpu")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True
