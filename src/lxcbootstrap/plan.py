"""
The provisioning plan: registered actions turned into ordered steps.
"""

from functools import partial
from typing import List, Optional, Tuple

from lxcbootstrap.actions import ActionContext, ActionRegistry, action_registry
from lxcbootstrap.runner import Step

PLAN_ORDER: Tuple[str, ...] = (
    "system_setup",
    "nodejs_setup",
    "pocketbase_setup",
    "postgresql_setup",
    "ssh_key_setup",
    "app_deploy",
    "process_manager_setup",
    "cicd_setup",
)


def build_plan(context: ActionContext, registry: Optional[ActionRegistry] = None) -> List[Step]:
    """
    Build the ordered step list for one run.

    Args:
        context: Handed to every action when its step executes
        registry: Action lookup (defaults to the global registry)

    Raises:
        KeyError: A planned step has no registered action
    """
    registry = registry or action_registry
    steps = []
    for step_id in PLAN_ORDER:
        action = registry.get(step_id)
        if action is None:
            raise KeyError(f"No action registered for step {step_id}")
        steps.append(
            Step(
                identifier=step_id,
                action=partial(action.execute, context),
                applicability=action.applies,
                requires=tuple(action.requires),
                description=action.description,
            )
        )
    return steps
