"""
Tests for the lxc-bootstrap command line.

The real plan shells out to apt, pm2 and git; these tests swap it for steps
with the same identifiers and applicability whose actions only record that
they ran.
"""

import logging
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from lxcbootstrap import __version__
from lxcbootstrap.actions import action_registry
from lxcbootstrap.cli import main
from lxcbootstrap.plan import PLAN_ORDER
from lxcbootstrap.runner import Step
from lxcbootstrap.storage import open_file_stores

POCKETBASE_ANSWERS = {
    "APP_NAME": "demo",
    "GITHUB_REPO": "git@github.com:acme/demo.git",
    "DB_CHOICE": 1,
    "POCKETBASE_PASSWORD": "pb-secret",
}


class FakePlan:
    """Stands in for build_plan; records which actions ran."""

    def __init__(self, fail_on=None, interrupt_on=None):
        self.fail_on = fail_on
        self.interrupt_on = interrupt_on
        self.calls = []

    def __call__(self, context):
        return [self._step(step_id) for step_id in PLAN_ORDER]

    def _step(self, step_id):
        action = action_registry.get(step_id)

        def run():
            self.calls.append(step_id)
            if step_id == self.interrupt_on:
                raise KeyboardInterrupt
            return step_id != self.fail_on

        return Step(step_id, run, applicability=action.applies, requires=action.requires)


@pytest.fixture(autouse=True)
def drop_log_handlers():
    """main() installs a handler on the CliRunner stream; remove it afterwards."""
    yield
    root = logging.getLogger("lxcbootstrap")
    for handler in list(root.handlers):
        if getattr(handler, "_lxcbootstrap", False):
            root.removeHandler(handler)


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "state"


@pytest.fixture
def write_answers(tmp_path):
    def write(answers):
        path = tmp_path / "answers.yaml"
        path.write_text(yaml.safe_dump(answers))
        return str(path)
    return write


@pytest.fixture
def host():
    with patch("lxcbootstrap.cli.require_root"), patch(
        "lxcbootstrap.cli.detect_container_ip", return_value="10.0.0.9"
    ) as detect:
        yield detect


def invoke(plan, state_dir, answers_path, *extra):
    with patch("lxcbootstrap.cli.build_plan", plan):
        return CliRunner().invoke(
            main,
            ["--state-dir", str(state_dir), "--answers", answers_path, *extra],
        )


class TestProvisioningRuns:
    """End-to-end runs through the CLI with a recording plan."""

    def test_fresh_pocketbase_session_finishes(self, host, state_dir, write_answers):
        plan = FakePlan()

        result = invoke(plan, state_dir, write_answers(POCKETBASE_ANSWERS))

        assert result.exit_code == 0, result.output
        assert plan.calls == [
            "system_setup",
            "nodejs_setup",
            "pocketbase_setup",
            "ssh_key_setup",
            "app_deploy",
            "process_manager_setup",
        ]
        store, ledger = open_file_stores(state_dir)
        assert not ledger.has_completed("postgresql_setup")
        assert not ledger.has_completed("cicd_setup")
        assert store.get("CONTAINER_IP") == "10.0.0.9"
        assert "postgresql_setup (not_applicable)" in result.output
        assert "Bootstrap complete!" in result.output
        assert "pb-secret" not in result.output

    def test_rerun_after_interruption_skips_completed_steps(self, host, state_dir, write_answers):
        store, ledger = open_file_stores(state_dir)
        for key, value in POCKETBASE_ANSWERS.items():
            store.set(key, str(value))
        ledger.mark_completed("system_setup")
        ledger.mark_completed("nodejs_setup")
        plan = FakePlan()

        result = invoke(plan, state_dir, write_answers({}))

        assert result.exit_code == 0, result.output
        assert "skipped    system_setup (already_completed)" in result.output
        assert "skipped    nodejs_setup (already_completed)" in result.output
        assert plan.calls[0] == "pocketbase_setup"

    def test_halt_then_resume(self, host, state_dir, write_answers):
        answers = write_answers(POCKETBASE_ANSWERS)

        halted = invoke(FakePlan(fail_on="app_deploy"), state_dir, answers)

        assert halted.exit_code == 1
        assert "Step 'app_deploy' failed" in halted.output

        plan = FakePlan()
        resumed = invoke(plan, state_dir, answers)

        assert resumed.exit_code == 0, resumed.output
        assert plan.calls == ["app_deploy", "process_manager_setup"]

    def test_declining_resume_starts_over(self, host, state_dir, write_answers):
        invoke(FakePlan(), state_dir, write_answers(POCKETBASE_ANSWERS))
        plan = FakePlan()

        result = invoke(plan, state_dir, write_answers({**POCKETBASE_ANSWERS, "APP_NAME": "other", "RESUME": False}))

        assert result.exit_code == 0, result.output
        assert plan.calls[0] == "system_setup"
        store, _ = open_file_stores(state_dir)
        assert store.get("APP_NAME") == "other"

    def test_interrupt_exits_130(self, host, state_dir, write_answers):
        result = invoke(FakePlan(interrupt_on="nodejs_setup"), state_dir, write_answers(POCKETBASE_ANSWERS))

        assert result.exit_code == 130
        _, ledger = open_file_stores(state_dir)
        assert ledger.completed() == ["system_setup"]


class TestConfigurationErrors:
    """Errors that stop the run before any step executes."""

    def test_missing_required_answer(self, host, state_dir, write_answers):
        plan = FakePlan()

        result = invoke(plan, state_dir, write_answers({"APP_NAME": "demo"}))

        assert result.exit_code == 2
        assert "GITHUB_REPO" in result.output
        assert plan.calls == []

    def test_invalid_choice(self, host, state_dir, write_answers):
        result = invoke(FakePlan(), state_dir, write_answers({**POCKETBASE_ANSWERS, "DB_CHOICE": 7}))
        assert result.exit_code == 2

    def test_not_root(self, state_dir, write_answers):
        with patch("lxcbootstrap.host.os.geteuid", return_value=1000):
            result = invoke(FakePlan(), state_dir, write_answers(POCKETBASE_ANSWERS))

        assert result.exit_code == 2
        assert "must be run as root" in result.output

    def test_corrupt_store(self, host, state_dir, write_answers):
        state_dir.mkdir()
        (state_dir / "session.conf").write_text("not a record\n")

        result = invoke(FakePlan(), state_dir, write_answers(POCKETBASE_ANSWERS))

        assert result.exit_code == 2

    def test_undecodable_store(self, host, state_dir, write_answers):
        """A session file that is not UTF-8 is a configuration error, not a halted run."""
        state_dir.mkdir()
        (state_dir / "session.conf").write_bytes(b"APP_NAME=\xff\xfe\n")
        plan = FakePlan()

        result = invoke(plan, state_dir, write_answers(POCKETBASE_ANSWERS))
        status = CliRunner().invoke(main, ["--state-dir", str(state_dir), "--status"])

        assert result.exit_code == 2
        assert "session.conf:1" in result.output
        assert plan.calls == []
        assert status.exit_code == 2

    def test_answers_must_be_mapping(self, host, state_dir, tmp_path):
        path = tmp_path / "answers.yaml"
        path.write_text("- just\n- a list\n")

        result = invoke(FakePlan(), state_dir, str(path))

        assert result.exit_code == 2


class TestStatusAndVersion:
    """Tests for the informational options."""

    def test_status(self, state_dir):
        store, ledger = open_file_stores(state_dir)
        store.set("APP_NAME", "demo")
        store.set("POCKETBASE_PASSWORD", "pb-secret")
        ledger.mark_completed("system_setup")

        result = CliRunner().invoke(main, ["--state-dir", str(state_dir), "--status"])

        assert result.exit_code == 0
        assert "POCKETBASE_PASSWORD=[hidden]" in result.output
        assert "pb-secret" not in result.output
        assert "nodejs_setup" in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
