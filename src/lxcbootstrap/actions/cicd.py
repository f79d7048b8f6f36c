"""
Continuous deployment through a GitHub Actions workflow on a self-hosted runner.

The runner lives on the toolbox container and deploys by SSH-ing into this
container as root, so this action also prepares root's SSH directory and
asks the operator to install the toolbox key.
"""

import logging
import shlex
from typing import Any, Dict, Mapping

from lxcbootstrap.actions.base import ActionContext, ActionResult, ProvisioningAction, action_registry
from lxcbootstrap.config import BootstrapConfig
from lxcbootstrap.files import atomic_write, ensure_dir, render_workflow
from lxcbootstrap.questions import APP_NAME, CONTAINER_IP, GITHUB_TOKEN, TOOLBOX_IP, cicd_enabled

logger = logging.getLogger(__name__)

WORKFLOW_PATH = ".github/workflows/deploy.yml"
COMMIT_MESSAGE = "Add automated deployment workflow"

SSH_COPY_INSTRUCTIONS = """\
IMPORTANT: SSH setup required for CI/CD
Run this command on your TOOLBOX LXC ({toolbox}) to copy SSH access:

    ssh-copy-id root@{container}

You can test the connection by running this from toolbox:

    ssh root@{container} 'echo "SSH connection successful"'

Press ENTER after running the ssh-copy-id command on toolbox..."""


def deploy_script(app_name: str, container_ip: str, settings: BootstrapConfig) -> str:
    """Shell run by the workflow: update, build and restart the app over SSH."""
    app_dir = str(settings.app_home / app_name)
    remote_steps = " && ".join(
        [
            f"cd {shlex.quote(app_dir)}",
            shlex.join(["git", "pull", "origin", settings.deploy_branch]),
            "npm install",
            "npm run build",
            shlex.join(["pm2", "restart", app_name]),
        ]
    )
    remote = shlex.join(["runuser", "-l", settings.app_user, "-c", remote_steps])
    return f"ssh -o StrictHostKeyChecking=no root@{container_ip} {shlex.quote(remote)}\n"


def deploy_workflow(app_name: str, container_ip: str, settings: BootstrapConfig) -> Dict[str, Any]:
    return {
        "name": "Deploy App",
        "on": {"push": {"branches": [settings.deploy_branch]}},
        "jobs": {
            "deploy": {
                "runs-on": "self-hosted",
                "steps": [
                    {
                        "name": "Deploy latest code to LXC",
                        "run": deploy_script(app_name, container_ip, settings),
                    }
                ],
            }
        },
    }


@action_registry.register("cicd_setup")
class CicdSetup(ProvisioningAction):
    """
    Commit a deploy workflow to the application repository.

    Commit and push are best-effort (``ignore_failure``): the commit fails
    when the workflow is unchanged, and a rejected push can be repeated by
    hand from the checkout.
    """

    description = "Create and push the GitHub Actions deploy workflow"
    requires = (APP_NAME, CONTAINER_IP, TOOLBOX_IP, GITHUB_TOKEN)

    def applies(self, values: Mapping[str, str]) -> bool:
        return cicd_enabled(values)

    def execute(self, context: ActionContext) -> ActionResult:
        settings = context.settings
        commands = context.commands
        user = settings.app_user
        app_name = context.value(APP_NAME, self.name)
        container_ip = context.value(CONTAINER_IP, self.name)
        toolbox_ip = context.value(TOOLBOX_IP, self.name)
        app_dir = settings.app_home / app_name

        workflow = app_dir / WORKFLOW_PATH
        atomic_write(workflow, render_workflow(deploy_workflow(app_name, container_ip, settings)), mode=0o644)
        context.give_to_app_user(app_dir / ".github")

        ensure_dir(settings.operator_ssh_dir, mode=0o700)
        context.prompts.pause(SSH_COPY_INSTRUCTIONS.format(toolbox=toolbox_ip, container=container_ip))

        commands.run(["git", "add", WORKFLOW_PATH], user=user, cwd=app_dir)
        commands.run(["git", "config", "user.email", settings.git_author_email], user=user, cwd=app_dir)
        commands.run(["git", "config", "user.name", settings.git_author_name], user=user, cwd=app_dir)
        commands.run(
            ["git", "commit", "-m", COMMIT_MESSAGE],
            user=user,
            cwd=app_dir,
            ignore_failure=True,
            context="nothing new to commit",
        )
        pushed = commands.run(
            ["git", "push", "origin", settings.deploy_branch],
            user=user,
            cwd=app_dir,
            ignore_failure=True,
            context=f"push {WORKFLOW_PATH} manually from {app_dir}",
        ).ok

        return self.succeeded("Deploy workflow created", pushed=pushed)
