"""
Action framework for provisioning steps.

An action is the body of a step: it installs packages, provisions a
database, deploys the app. The step runner treats it as opaque; it only
sees success, failure or an exception.

Actions must assume they are not running for the first time. A step is
recorded only after its action returns, so an action interrupted half-way
runs again from the top on the next invocation; every side effect is
preceded by a check of whether it already happened.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

import httpx

from lxcbootstrap.config import BootstrapConfig
from lxcbootstrap.errors import StepOrderingError

logger = logging.getLogger(__name__)


class ActionStatus(Enum):
    """Result status of an action execution."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ActionResult:
    """Result of an action execution."""
    status: ActionStatus
    action_name: str
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, action_name: str, message: str = "", **data: Any) -> "ActionResult":
        return cls(status=ActionStatus.SUCCESS, action_name=action_name, message=message, data=data)

    @classmethod
    def failed(cls, action_name: str, message: str, **data: Any) -> "ActionResult":
        return cls(status=ActionStatus.FAILED, action_name=action_name, message=message, data=data)


@dataclass
class ActionContext:
    """
    Everything an action may touch.

    Attributes:
        settings: Tool settings (ports, paths, timeouts)
        store: Session configuration; read through ``value``
        commands: External command runner
        prompts: Operator interaction for "press ENTER when done" pauses
        http_factory: Builds the HTTP client for downloads and health checks
    """
    settings: BootstrapConfig
    store: Any
    commands: Any
    prompts: Any
    http_factory: Callable[[], httpx.Client] = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.http_factory is None:
            timeout = self.settings.http_timeout_seconds
            self.http_factory = lambda: httpx.Client(timeout=timeout, follow_redirects=True)

    def value(self, key: str, step_id: str = "") -> str:
        """Read a configuration value the action declared in ``requires``."""
        value = self.store.get(key)
        if value is None:
            raise StepOrderingError(step_id or "unknown", [key])
        return value

    @property
    def values(self) -> Dict[str, str]:
        return self.store.load()

    def give_to_app_user(self, path: Any) -> None:
        """Recursively hand ``path`` to the application user."""
        user = self.settings.app_user
        self.commands.run(["chown", "-R", f"{user}:{user}", str(path)])


class ProvisioningAction(ABC):
    """
    Base class for step actions.

    Subclasses set ``name`` (the ledger identifier), ``description`` and
    ``requires`` (configuration keys read by ``execute``), and override
    ``applies`` when the step only belongs to some configurations.
    """

    name: str = "base_action"
    description: str = "Base action class"
    requires: Tuple[str, ...] = ()

    def applies(self, values: Mapping[str, str]) -> bool:
        """Whether this action is part of a session with these values."""
        return True

    @abstractmethod
    def execute(self, context: ActionContext) -> ActionResult:
        """
        Execute the action.

        Args:
            context: Settings, configuration values and external-system handles

        Returns:
            ActionResult indicating success/failure

        Raises:
            StepActionFailed: An external operation failed
        """

    def succeeded(self, message: str = "", **data: Any) -> ActionResult:
        return ActionResult.success(self.name, message, **data)

    def failed(self, message: str, **data: Any) -> ActionResult:
        return ActionResult.failed(self.name, message, **data)


class ActionRegistry:
    """
    Registry of provisioning actions.

    Actions can be registered via decorator or direct registration.
    """

    def __init__(self):
        self._actions: Dict[str, Type[ProvisioningAction]] = {}
        self._instances: Dict[str, ProvisioningAction] = {}

    def register(self, name: str) -> Callable[[Type[ProvisioningAction]], Type[ProvisioningAction]]:
        """
        Decorator to register an action class.

        Usage:
            @action_registry.register("system_setup")
            class SystemSetup(ProvisioningAction):
                ...
        """
        def decorator(cls: Type[ProvisioningAction]) -> Type[ProvisioningAction]:
            self.register_class(name, cls)
            return cls
        return decorator

    def register_class(self, name: str, cls: Type[ProvisioningAction]) -> None:
        """Register an action class directly."""
        cls.name = name
        self._actions[name] = cls
        self._instances.pop(name, None)
        logger.debug(f"Registered action: {name}")

    def get(self, name: str) -> Optional[ProvisioningAction]:
        """Get an action instance by name."""
        if name not in self._actions:
            return None

        # Lazy instantiation
        if name not in self._instances:
            self._instances[name] = self._actions[name]()

        return self._instances[name]


# Global registry instance
action_registry = ActionRegistry()
