"""Shared fixtures for bridge tests."""

import logging

import pytest


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop handlers installed by configure_logging during a test."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers and type(handler) is logging.StreamHandler:
            root_logger.removeHandler(handler)
    root_logger.setLevel(level)
    logging.getLogger("filelock").setLevel(logging.NOTSET)


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """A project directory with a bridge.yml, used as the working directory."""
    (tmp_path / "bridge.yml").write_text(
        "default_host: dev\n"
        "hosts:\n"
        "  dev:\n"
        "    hostname: dev-box\n"
        "    path: /srv/app\n"
        "  win:\n"
        "    hostname: win-box\n"
        "    path: C:/dev/app\n"
        "    shell: powershell\n"
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path
