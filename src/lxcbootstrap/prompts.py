"""
Configuration value sources.

A PromptSource resolves a configuration key to a value. A key the
ConfigStore already holds is returned as stored and the operator is not
asked again; otherwise the value is elicited, the default applied when the
answer is empty, and the result persisted before it is returned.

Two implementations:
- ClickPromptSource asks on the terminal (secrets are not echoed)
- ScriptedPromptSource answers from a mapping (tests, unattended runs)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Optional

import click

from lxcbootstrap.errors import RequiredValueMissing
from lxcbootstrap.storage.base import ConfigStore

logger = logging.getLogger(__name__)

_YES = ("y", "yes", "true", "1")
_NO = ("n", "no", "false", "0")


def parse_yes_no(value: str) -> Optional[bool]:
    """Interpret a yes/no answer; None when it is neither."""
    value = value.strip().lower()
    if value in _YES:
        return True
    if value in _NO:
        return False
    return None


class PromptSource(ABC):
    """Resolve configuration keys from the session store or the operator."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def resolve(
        self,
        key: str,
        default: Optional[str] = None,
        *,
        secret: bool = False,
        required: bool = True,
        text: Optional[str] = None,
        validate: Optional[Callable[[str], str]] = None,
    ) -> str:
        """
        Resolve ``key`` to a value.

        Args:
            key: Configuration key
            default: Applied when the elicited answer is empty
            secret: Do not echo the answer while it is typed
            required: Raise when the value is still empty after the default
            text: Question shown to the operator (defaults to the key)
            validate: Normalizes or rejects the answer before it is stored

        Returns:
            The stored or newly elicited value

        Raises:
            RequiredValueMissing: A required key resolved to an empty value
        """
        existing = self.store.get(key)
        if existing is not None:
            logger.debug(f"Reusing stored value for {key}")
            return existing

        answer = self.ask(key, text or key, default, secret)
        if not secret:
            answer = answer.strip()
        if answer == "" and default is not None:
            answer = default
        if answer == "" and required:
            raise RequiredValueMissing(key)
        if validate is not None:
            answer = validate(answer)

        self.store.set(key, answer)
        logger.debug(f"Stored answer for {key}")
        return answer

    @abstractmethod
    def ask(self, key: str, text: str, default: Optional[str], secret: bool) -> str:
        """Elicit a raw answer for ``key`` from the operator."""

    @abstractmethod
    def confirm(self, text: str, default: bool = False, key: Optional[str] = None) -> bool:
        """Ask a yes/no question that is not persisted."""

    @abstractmethod
    def pause(self, text: str) -> None:
        """Block until the operator acknowledges ``text``."""


class ClickPromptSource(PromptSource):
    """Interactive prompts on the controlling terminal."""

    def ask(self, key: str, text: str, default: Optional[str], secret: bool) -> str:
        return click.prompt(
            text,
            default=default if default is not None else "",
            show_default=bool(default) and not secret,
            hide_input=secret,
            type=str,
        )

    def confirm(self, text: str, default: bool = False, key: Optional[str] = None) -> bool:
        return click.confirm(text, default=default)

    def pause(self, text: str) -> None:
        click.echo(text)
        click.prompt("Press ENTER to continue", default="", show_default=False, prompt_suffix="")


class ScriptedPromptSource(PromptSource):
    """
    Answers from a mapping instead of a terminal.

    A key with no scripted answer elicits the empty string, so required keys
    without a default raise RequiredValueMissing exactly as an operator
    pressing ENTER would.
    """

    def __init__(self, store: ConfigStore, answers: Optional[Mapping[str, str]] = None):
        super().__init__(store)
        self.answers: Dict[str, str] = {k: str(v) for k, v in (answers or {}).items()}
        self.elicited: List[str] = []
        self.pauses: List[str] = []

    def ask(self, key: str, text: str, default: Optional[str], secret: bool) -> str:
        self.elicited.append(key)
        return self.answers.get(key, "")

    def confirm(self, text: str, default: bool = False, key: Optional[str] = None) -> bool:
        if key is not None and key in self.answers:
            parsed = parse_yes_no(self.answers[key])
            if parsed is not None:
                return parsed
        return default

    def pause(self, text: str) -> None:
        logger.info(text)
        self.pauses.append(text)
