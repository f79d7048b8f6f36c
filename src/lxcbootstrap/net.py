"""
HTTP helpers for provisioning actions.

Actions download installer scripts and release archives and wait for
services to answer health checks. All of it goes through httpx clients built
by ``ActionContext.http_factory`` so tests can substitute a mock transport.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Union

import httpx

from lxcbootstrap.errors import StepActionFailed

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.Client]


def fetch_json(client_factory: ClientFactory, url: str) -> Dict[str, Any]:
    """GET ``url`` and decode the JSON body."""
    try:
        with client_factory() as client:
            response = client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        raise StepActionFailed(f"Request to {url} failed: {e}", cause=e) from e
    except ValueError as e:
        raise StepActionFailed(f"Response from {url} is not JSON", cause=e) from e


def download_file(client_factory: ClientFactory, url: str, dest: Union[str, Path]) -> Path:
    """
    Stream ``url`` into ``dest``.

    The body is written to ``<dest>.part`` and renamed on completion, so an
    interrupted download never looks like a finished one.
    """
    dest = Path(dest)
    partial = dest.with_name(dest.name + ".part")
    logger.info(f"Downloading {url}")
    try:
        with client_factory() as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
    except httpx.HTTPError as e:
        partial.unlink(missing_ok=True)
        raise StepActionFailed(f"Download of {url} failed: {e}", cause=e) from e

    partial.replace(dest)
    return dest


def wait_until_healthy(
    client_factory: ClientFactory,
    url: str,
    timeout: float,
    interval: float = 1.0,
) -> bool:
    """
    Poll ``url`` until it answers 2xx or ``timeout`` seconds pass.

    Returns:
        True when the service answered in time
    """
    deadline = time.monotonic() + timeout
    with client_factory() as client:
        while True:
            try:
                if client.get(url).is_success:
                    return True
            except httpx.TransportError as e:
                logger.debug(f"{url} not ready: {e}")
            if time.monotonic() >= deadline:
                return False
            time.sleep(interval)
