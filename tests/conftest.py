"""Shared pytest fixtures for pollex tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest
from click.testing import CliRunner

from pollex.engine.events import EventEmitter
from pollex.engine.main import MainManager
from pollex.engine.registry import CommandKind, CommandManager
from pollex.engine.streams import Iterator, Monitor


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


class DemoManager(CommandManager):
    """Submanager exercising every handler shape the engine supports."""

    def __init__(self, emitter: EventEmitter) -> None:
        super().__init__()
        self.emitter = emitter
        self.calls: list[object] = []
        self.register("add", self.add)
        self.register("slowAdd", self.slow_add)
        self.register("boom", self.boom)
        self.register("watch", self.watch, CommandKind.MONITOR)
        self.register("numbers", self.numbers)

    def add(self, params: dict) -> int:
        self.calls.append(params)
        return params["a"] + params["b"]

    async def slow_add(self, params: dict) -> int:
        await asyncio.sleep(0)
        return params["a"] + params["b"]

    def boom(self, params: dict) -> None:
        msg = "handler exploded"
        raise RuntimeError(msg)

    def watch(self, params: dict) -> Monitor:
        return Monitor(self.emitter, params.get("event", "e"))

    def numbers(self, params: dict) -> Iterator:
        def produce(push):
            for value in params.get("values", [1, 2, 3]):
                push(value)

        return Iterator(produce)


@pytest.fixture
def demo(emitter: EventEmitter) -> DemoManager:
    return DemoManager(emitter)


@pytest.fixture
def engine(demo: DemoManager) -> MainManager:
    """Root manager with the demo manager mounted as ``demo``."""
    main = MainManager()
    main.add_submanager("demo", demo)
    return main


@pytest.fixture
def settle() -> Callable[..., Awaitable[None]]:
    """Yield to the event loop a few times so spawned executions can run."""

    async def _settle(rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated CWD with no pollex.toml above it and no POLLEX_* overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("POLLEX_CONFIG", raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo configure_logging() calls made by CLI invocations."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    pollex = logging.getLogger("pollex")
    pollex_level = pollex.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    pollex.setLevel(pollex_level)
