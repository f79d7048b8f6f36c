"""
Facts about the host the bootstrap runs on.
"""

import logging
import os

from lxcbootstrap.errors import PreflightError, StepActionFailed

logger = logging.getLogger(__name__)


def require_root() -> None:
    """Raise PreflightError unless running with effective uid 0."""
    if os.geteuid() != 0:
        raise PreflightError("This script must be run as root")


def detect_container_ip(commands) -> str:
    """First address reported by ``hostname -I``."""
    result = commands.run(["hostname", "-I"], context="Detecting the container IP address")
    addresses = result.stdout.split()
    if not addresses:
        raise StepActionFailed("hostname -I reported no addresses")
    logger.info(f"Container IP: {addresses[0]}")
    return addresses[0]
