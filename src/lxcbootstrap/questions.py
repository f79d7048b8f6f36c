"""
The configuration questions asked before provisioning starts.

Every question names a ConfigStore key. The interview resolves them in
order through a PromptSource, so answers given in an earlier invocation of
the same session are reused silently. A question whose ``when`` predicate
is false (a PostgreSQL password when PocketBase was chosen) is not asked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from lxcbootstrap.config import BootstrapConfig
from lxcbootstrap.errors import InvalidChoice
from lxcbootstrap.prompts import PromptSource, parse_yes_no

logger = logging.getLogger(__name__)

# Configuration keys
APP_NAME = "APP_NAME"
GITHUB_REPO = "GITHUB_REPO"
DB_CHOICE = "DB_CHOICE"
POCKETBASE_EMAIL = "POCKETBASE_EMAIL"
POCKETBASE_PASSWORD = "POCKETBASE_PASSWORD"
DB_USERNAME = "DB_USERNAME"
DB_PASSWORD = "DB_PASSWORD"
SETUP_CICD = "SETUP_CICD"
GITHUB_TOKEN = "GITHUB_TOKEN"
TOOLBOX_IP = "TOOLBOX_IP"
CONTAINER_IP = "CONTAINER_IP"

DB_POCKETBASE = "1"
DB_POSTGRESQL = "2"

SECRET_KEYS = frozenset({POCKETBASE_PASSWORD, DB_PASSWORD, GITHUB_TOKEN})


def _always(values: Mapping[str, str]) -> bool:
    return True


@dataclass(frozen=True)
class Question:
    """A configuration key and how to ask for it."""

    key: str
    text: str
    default: Optional[str] = None
    secret: bool = False
    required: bool = True
    choices: Tuple[str, ...] = ()
    yes_no: bool = False
    when: Callable[[Mapping[str, str]], bool] = field(default=_always, compare=False)

    def validate(self, value: str) -> str:
        """Normalize yes/no answers and reject values outside ``choices``."""
        if self.yes_no:
            return "y" if parse_yes_no(value) else "n"
        if self.choices and value not in self.choices:
            raise InvalidChoice(self.key, value, self.choices)
        return value


def uses_pocketbase(values: Mapping[str, str]) -> bool:
    return values.get(DB_CHOICE) == DB_POCKETBASE


def uses_postgresql(values: Mapping[str, str]) -> bool:
    return values.get(DB_CHOICE) == DB_POSTGRESQL


def cicd_requested(values: Mapping[str, str]) -> bool:
    return values.get(SETUP_CICD) == "y"


def cicd_enabled(values: Mapping[str, str]) -> bool:
    """CI/CD runs only when it was requested and both token and toolbox IP were given."""
    return cicd_requested(values) and bool(values.get(GITHUB_TOKEN)) and bool(values.get(TOOLBOX_IP))


def build_questions(settings: BootstrapConfig) -> List[Question]:
    """The ordered question plan."""
    return [
        Question(APP_NAME, "App name (e.g., my-awesome-app)"),
        Question(GITHUB_REPO, "GitHub repo SSH URL (git@github.com:user/repo.git)"),
        Question(
            DB_CHOICE,
            "Choose database (1 = PocketBase, 2 = PostgreSQL)",
            default=DB_POCKETBASE,
            choices=(DB_POCKETBASE, DB_POSTGRESQL),
        ),
        Question(
            POCKETBASE_EMAIL,
            "PocketBase admin email",
            default=settings.pocketbase_default_email,
            when=uses_pocketbase,
        ),
        Question(POCKETBASE_PASSWORD, "PocketBase admin password", secret=True, when=uses_pocketbase),
        Question(DB_USERNAME, "Database username", default="appuser", when=uses_postgresql),
        Question(DB_PASSWORD, "Database password", secret=True, when=uses_postgresql),
        Question(
            SETUP_CICD,
            "Set up automated deployment?",
            default="n",
            yes_no=True,
        ),
        Question(
            GITHUB_TOKEN,
            "GitHub personal access token",
            secret=True,
            required=False,
            when=cicd_requested,
        ),
        Question(
            TOOLBOX_IP,
            "Toolbox LXC IP (where the GitHub runner is installed)",
            required=False,
            when=lambda values: cicd_requested(values) and bool(values.get(GITHUB_TOKEN)),
        ),
    ]


def interview(prompts: PromptSource, questions: List[Question]) -> Dict[str, str]:
    """
    Resolve every applicable question in order.

    Args:
        prompts: Source of values (stored answers first, then the operator)
        questions: The ordered question plan

    Returns:
        Mapping of resolved keys to values

    Raises:
        RequiredValueMissing: A required answer was empty
        InvalidChoice: An answer was outside the allowed choices
    """
    values: Dict[str, str] = {}
    for question in questions:
        if not question.when(values):
            continue
        values[question.key] = prompts.resolve(
            question.key,
            question.default,
            secret=question.secret,
            required=question.required,
            text=question.text,
            validate=question.validate,
        )

    if cicd_requested(values) and not cicd_enabled(values):
        missing = "GitHub token" if not values.get(GITHUB_TOKEN) else "toolbox IP"
        logger.warning(f"No {missing} provided - CI/CD will be skipped")

    return values
