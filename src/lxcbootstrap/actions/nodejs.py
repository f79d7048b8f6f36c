"""
Node.js LTS and the PM2 process manager.
"""

import logging
import tempfile
from pathlib import Path

from lxcbootstrap.actions.base import ActionContext, ActionResult, ProvisioningAction, action_registry
from lxcbootstrap.actions.system import APT_ENV
from lxcbootstrap.net import download_file

logger = logging.getLogger(__name__)


@action_registry.register("nodejs_setup")
class NodejsSetup(ProvisioningAction):
    """Install Node.js from NodeSource unless present, then PM2 unless present."""

    description = "Install Node.js LTS and PM2"

    def execute(self, context: ActionContext) -> ActionResult:
        settings = context.settings
        commands = context.commands
        installed = []

        if commands.which("node"):
            logger.info("Node.js already installed")
        else:
            with tempfile.TemporaryDirectory(prefix="lxc-bootstrap-") as tmp:
                script = download_file(
                    context.http_factory,
                    settings.nodesource_setup_url,
                    Path(tmp) / "nodesource_setup.sh",
                )
                commands.run(["bash", str(script)], env=APT_ENV, context="Adding the NodeSource repository")
            commands.run(["apt-get", "install", "-y", "nodejs"], env=APT_ENV, context="Installing Node.js")
            installed.append("nodejs")

        if commands.which("pm2"):
            logger.info("PM2 already installed")
        else:
            commands.run(["npm", "install", "-g", "pm2"], context="Installing PM2")
            installed.append("pm2")

        return self.succeeded("Node.js and PM2 available", installed=installed)
