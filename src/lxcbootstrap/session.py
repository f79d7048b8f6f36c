"""
Provisioning session: the pair of stores plus the resume decision.

A session spans every invocation of the program until the operator chooses
to discard it. On startup a non-empty ConfigStore means an earlier
invocation already collected answers, and the operator decides once, for
the whole session, whether to reuse them (and the ledger) or start over.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from lxcbootstrap.storage.base import ConfigStore, ProgressLedger

logger = logging.getLogger(__name__)

FRESH = "fresh"
RESUMED = "resumed"
RESET = "reset"

RESUME_QUESTION = "A previous bootstrap session was found. Resume it?"


class Session:
    """ConfigStore and ProgressLedger of one provisioning session."""

    def __init__(self, store: ConfigStore, ledger: ProgressLedger):
        self.store = store
        self.ledger = ledger

    @property
    def session_id(self) -> str:
        """Label used in logs; the app name once it is known."""
        return self.store.get("APP_NAME") or "default"

    def has_previous(self) -> bool:
        """True when an earlier invocation stored configuration."""
        return bool(self.store.load())

    def completed_steps(self) -> List[str]:
        return self.ledger.completed()

    def reset(self) -> None:
        """Discard the whole session.

        The ledger is cleared first so an interruption in between never
        leaves completion records without the configuration they were
        produced from.
        """
        self.ledger.clear()
        self.store.clear()
        logger.info("Previous session discarded")

    def resume_or_reset(self, confirm: Callable[[str], bool]) -> str:
        """
        Run the resume decision gate.

        Args:
            confirm: Asks the operator a yes/no question; True means resume

        Returns:
            "fresh" when there was nothing to resume, "resumed" or "reset"
        """
        if not self.has_previous():
            stale = self.completed_steps()
            if stale:
                # Records without the answers they were produced from
                logger.warning(f"Discarding progress records with no stored configuration: {', '.join(stale)}")
                self.ledger.clear()
            return FRESH

        completed = self.completed_steps()
        if completed:
            logger.info(f"Previous session completed: {', '.join(completed)}")
        else:
            logger.info("Previous session stored answers but completed no steps")

        if confirm(RESUME_QUESTION):
            logger.info("Resuming previous session")
            return RESUMED

        self.reset()
        return RESET
