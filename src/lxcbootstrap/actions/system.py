"""
Base system setup: package installation and the application user.
"""

import logging

from lxcbootstrap.actions.base import ActionContext, ActionResult, ProvisioningAction, action_registry

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


@action_registry.register("system_setup")
class SystemSetup(ProvisioningAction):
    """
    Install base packages and create the unprivileged application user.

    ``apt-get install`` is a no-op for installed packages and ``usermod -aG``
    for existing memberships, so only the user creation needs a probe.
    """

    description = "Install base packages and create the application user"

    def execute(self, context: ActionContext) -> ActionResult:
        settings = context.settings
        commands = context.commands

        commands.require_tool("apt-get", hint="lxc-bootstrap targets Debian and Ubuntu containers")
        commands.run(["apt-get", "update"], env=APT_ENV, context="Refreshing package lists")
        commands.run(
            ["apt-get", "install", "-y", *settings.system_packages],
            env=APT_ENV,
            context="Installing base packages",
        )

        user = settings.app_user
        if commands.succeeds(["id", "-u", user]):
            logger.info(f"User {user} already exists")
        else:
            commands.run(
                ["useradd", "-m", "-d", str(settings.app_home), "-s", "/bin/bash", user],
                context=f"Creating user {user}",
            )
        commands.run(["usermod", "-aG", "sudo", user])

        return self.succeeded(f"System ready, application user {user}", user=user)
