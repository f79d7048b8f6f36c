"""
lxc-bootstrap CLI - resumable container provisioning.

Usage:
    lxc-bootstrap                          Interactive run (resumes a previous session)
    lxc-bootstrap --answers answers.yaml   Unattended run
    lxc-bootstrap --status                 Show completed steps and stored answers

Exit codes:
    0    every step completed or skipped
    1    a step failed; fix the cause and run again to resume
    2    configuration or pre-flight error
    130  interrupted by the operator
"""

import logging
import sys
from typing import Dict, Optional

import click
import yaml

from lxcbootstrap import __version__
from lxcbootstrap.actions import ActionContext
from lxcbootstrap.config import BootstrapConfig, get_config
from lxcbootstrap.errors import BootstrapError, StepActionFailed
from lxcbootstrap.host import detect_container_ip, require_root
from lxcbootstrap.logger import StepLogger, configure_logging
from lxcbootstrap.plan import PLAN_ORDER, build_plan
from lxcbootstrap.prompts import ClickPromptSource, PromptSource, ScriptedPromptSource
from lxcbootstrap.questions import CONTAINER_IP, build_questions, interview
from lxcbootstrap.report import render_status, render_summary
from lxcbootstrap.runner import RunState, StepOutcome, StepRunner, StepStatus
from lxcbootstrap.session import RESUMED, Session
from lxcbootstrap.shell import CommandRunner
from lxcbootstrap.storage import open_file_stores

logger = logging.getLogger(__name__)

EXIT_FINISHED = 0
EXIT_HALTED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

RESUME_KEY = "RESUME"


def load_answers(path: str) -> Dict[str, str]:
    """
    Read an answers file for unattended runs.

    YAML booleans become ``y``/``n`` so they satisfy yes/no questions.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a mapping of keys to answers", param_hint="--answers")

    answers = {}
    for key, value in data.items():
        if isinstance(value, bool):
            value = "y" if value else "n"
        answers[str(key)] = "" if value is None else str(value)
    return answers


def _echo_outcome(outcome: StepOutcome) -> None:
    if outcome.status == StepStatus.COMPLETED:
        click.secho(f"  completed  {outcome.step_id} ({outcome.duration_seconds:.1f}s)", fg="green")
    elif outcome.status == StepStatus.SKIPPED:
        reason = outcome.reason.value if outcome.reason else ""
        click.echo(f"  skipped    {outcome.step_id} ({reason})")
    elif outcome.status == StepStatus.FAILED:
        click.secho(f"  failed     {outcome.step_id}", fg="red", err=True)


def provision(
    settings: BootstrapConfig,
    session: Session,
    prompts: PromptSource,
    commands: CommandRunner,
) -> int:
    """
    One invocation: resume gate, interview, plan execution.

    Returns:
        Process exit code

    Raises:
        BootstrapError: Configuration problems (mapped to exit code 2 by ``main``)
    """
    decision = session.resume_or_reset(lambda text: prompts.confirm(text, default=True, key=RESUME_KEY))
    if decision == RESUMED:
        click.echo("Resuming previous session")

    interview(prompts, build_questions(settings))
    if session.store.get(CONTAINER_IP) is None:
        session.store.set(CONTAINER_IP, detect_container_ip(commands))

    context = ActionContext(settings=settings, store=session.store, commands=commands, prompts=prompts)
    steps = build_plan(context)

    runner = StepRunner(
        session.store,
        session.ledger,
        events=StepLogger(session_id=session.session_id),
        on_outcome=_echo_outcome,
    )
    report = runner.run(steps)

    if report.state == RunState.FINISHED:
        click.echo()
        click.secho(render_summary(session.store.load(), settings), fg="green")
        return EXIT_FINISHED

    click.secho(f"Step '{report.failed_step}' failed: {report.error}", fg="red", err=True)
    click.echo("Fix the problem above and run lxc-bootstrap again to resume.", err=True)
    return EXIT_HALTED


@click.command()
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    help="Directory for the session store and progress ledger",
)
@click.option(
    "--answers",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file of answers for an unattended run",
)
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), help="Logging level")
@click.option("--log-format", type=click.Choice(["text", "json"]), help="Log output format")
@click.option("--status", "show_status", is_flag=True, help="Show session progress and exit")
@click.version_option(version=__version__, prog_name="lxc-bootstrap")
def main(
    state_dir: Optional[str],
    answers: Optional[str],
    log_level: Optional[str],
    log_format: Optional[str],
    show_status: bool,
):
    """Provision a container to host a Node.js web app, resuming where the last run stopped."""
    overrides = {
        key: value
        for key, value in (("state_dir", state_dir), ("log_level", log_level), ("log_format", log_format))
        if value is not None
    }
    settings = get_config(**overrides)
    configure_logging(settings.log_level, settings.log_format)

    try:
        store, ledger = open_file_stores(
            settings.get_state_path(),
            settings.config_filename,
            settings.ledger_filename,
        )
        session = Session(store, ledger)

        if show_status:
            click.echo(render_status(session, PLAN_ORDER))
            return

        require_root()

        if answers:
            prompts: PromptSource = ScriptedPromptSource(store, load_answers(answers))
        else:
            prompts = ClickPromptSource(store)
        commands = CommandRunner(timeout=settings.command_timeout_seconds)

        code = provision(settings, session, prompts, commands)
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nInterrupted; run lxc-bootstrap again to resume.", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except StepActionFailed as e:
        # Container IP detection runs outside the plan
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_HALTED)
    except BootstrapError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    sys.exit(code)


if __name__ == "__main__":
    main()
