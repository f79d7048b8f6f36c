"""
Provisioning actions.

The concrete actions are registered with ``action_registry`` when this
package is imported.
"""

from lxcbootstrap.actions.base import (
    ActionContext,
    ActionRegistry,
    ActionResult,
    ActionStatus,
    ProvisioningAction,
    action_registry,
)
from lxcbootstrap.actions.system import SystemSetup
from lxcbootstrap.actions.nodejs import NodejsSetup
from lxcbootstrap.actions.database import PocketBaseSetup, PostgresqlSetup
from lxcbootstrap.actions.app import AppDeploy, ProcessManagerSetup, SshKeySetup
from lxcbootstrap.actions.cicd import CicdSetup

__all__ = [
    "ActionContext",
    "ActionRegistry",
    "ActionResult",
    "ActionStatus",
    "ProvisioningAction",
    "action_registry",
    "SystemSetup",
    "NodejsSetup",
    "PocketBaseSetup",
    "PostgresqlSetup",
    "SshKeySetup",
    "AppDeploy",
    "ProcessManagerSetup",
    "CicdSetup",
]
