"""
Pytest configuration and fixtures for lxc-bootstrap tests.
"""

from __future__ import annotations

import os
from typing import Callable, Dict, Generator, List, Optional

import httpx
import pytest

from lxcbootstrap.actions import ActionContext
from lxcbootstrap.config import BootstrapConfig, reset_config
from lxcbootstrap.prompts import ScriptedPromptSource
from lxcbootstrap.shell import CommandResult, CommandRunner
from lxcbootstrap.storage import MemoryConfigStore, MemoryProgressLedger


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Drop LXCBOOTSTRAP_* variables and the settings singleton around each test."""
    original = {k: v for k, v in os.environ.items() if k.startswith("LXCBOOTSTRAP_")}
    for key in original:
        del os.environ[key]
    reset_config()

    yield

    reset_config()
    for key in [k for k in os.environ if k.startswith("LXCBOOTSTRAP_")]:
        del os.environ[key]
    os.environ.update(original)


@pytest.fixture
def settings(tmp_path) -> BootstrapConfig:
    """Settings that keep every path inside tmp_path."""
    return BootstrapConfig(
        state_dir=str(tmp_path / "state"),
        app_home_root=str(tmp_path / "home"),
        operator_ssh_dir=str(tmp_path / "root-ssh"),
        pocketbase_ready_timeout_seconds=0.1,
    )


# ============================================================================
# Command Fixtures
# ============================================================================


class FakeCommandRunner(CommandRunner):
    """
    CommandRunner that records commands instead of executing them.

    Matching is by substring of the space-joined argv, so patterns work for
    both plain commands and ``runuser -l`` wrapped ones.

    Args:
        tools: Programs ``which`` reports as installed
        failures: Pattern -> exit code for commands that should fail
        outputs: Pattern -> stdout for commands that succeed
    """

    def __init__(
        self,
        tools=(),
        failures: Optional[Dict[str, int]] = None,
        outputs: Optional[Dict[str, str]] = None,
    ):
        super().__init__(timeout=10)
        self.tools = set(tools)
        self.failures = dict(failures or {})
        self.outputs = dict(outputs or {})
        self.side_effects: Dict[str, Callable[[List[str]], None]] = {}
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []

    def which(self, tool: str) -> bool:
        return tool in self.tools

    def _execute(self, argv, cwd, input_text, env) -> CommandResult:
        self.calls.append(list(argv))
        self.inputs.append(input_text)
        line = " ".join(argv)

        for pattern, effect in self.side_effects.items():
            if pattern in line:
                effect(argv)
        for pattern, code in self.failures.items():
            if pattern in line:
                return CommandResult(list(argv), code, "", f"{pattern}: simulated failure")
        stdout = next((out for pattern, out in self.outputs.items() if pattern in line), "")
        return CommandResult(list(argv), 0, stdout, "")

    @property
    def lines(self) -> List[str]:
        return [" ".join(c) for c in self.calls]

    def count(self, fragment: str) -> int:
        return sum(1 for line in self.lines if fragment in line)

    def ran(self, fragment: str) -> bool:
        return self.count(fragment) > 0


@pytest.fixture
def commands() -> FakeCommandRunner:
    return FakeCommandRunner()


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryConfigStore:
    return MemoryConfigStore()


@pytest.fixture
def ledger() -> MemoryProgressLedger:
    return MemoryProgressLedger()


@pytest.fixture
def http_handler() -> Dict[str, Callable[[httpx.Request], httpx.Response]]:
    """URL -> handler map consulted by the mock HTTP transport."""
    return {}


@pytest.fixture
def http_factory(http_handler):
    """httpx client factory backed by MockTransport; unknown URLs answer 404."""

    def handle(request: httpx.Request) -> httpx.Response:
        handler = http_handler.get(str(request.url))
        if handler is None:
            return httpx.Response(404)
        return handler(request)

    return lambda: httpx.Client(transport=httpx.MockTransport(handle))


@pytest.fixture
def action_context(settings, store, commands, http_factory) -> ActionContext:
    """ActionContext wired to fakes; scripted prompts record pauses."""
    return ActionContext(
        settings=settings,
        store=store,
        commands=commands,
        prompts=ScriptedPromptSource(store),
        http_factory=http_factory,
    )
