"""
Centralized settings for lxc-bootstrap.

Uses Pydantic BaseSettings for environment variable integration
and validation. These are settings of the *tool* (where state lives, which
ports and packages to use); the answers describing the deployment itself
(app name, repository, credentials) live in the session ConfigStore.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (LXCBOOTSTRAP_*)
3. .env file
4. Default values

Example:
    from lxcbootstrap.config import get_config

    config = get_config()
    print(config.state_dir)  # From LXCBOOTSTRAP_STATE_DIR or default

    # Override at runtime
    config = get_config(state_dir="/tmp/bootstrap-state")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BootstrapConfig(BaseSettings):
    """
    Central configuration for lxc-bootstrap.

    All settings can be overridden via environment variables
    prefixed with LXCBOOTSTRAP_.

    Example:
        export LXCBOOTSTRAP_STATE_DIR=/var/lib/lxc-bootstrap
        export LXCBOOTSTRAP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="LXCBOOTSTRAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Session persistence
    state_dir: str = Field(
        default="~/.lxc-bootstrap",
        description="Directory holding the session store and progress ledger",
    )
    config_filename: str = Field(
        default="session.conf",
        description="File name of the key=value session store",
    )
    ledger_filename: str = Field(
        default="progress.log",
        description="File name of the append-only progress ledger",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (text for console, json for collectors)",
    )

    # Target host layout
    app_user: str = Field(
        default="appuser",
        description="Unprivileged account that owns and runs the application",
    )
    app_home_root: str = Field(
        default="/home",
        description="Parent directory of the application user's home",
    )
    operator_ssh_dir: str = Field(
        default="/root/.ssh",
        description="SSH directory of the account the CI runner logs in as",
    )
    app_port: int = Field(default=3000, ge=1, le=65535)
    pocketbase_port: int = Field(default=8090, ge=1, le=65535)
    postgres_port: int = Field(default=5432, ge=1, le=65535)
    system_packages: List[str] = Field(
        default_factory=lambda: ["curl", "git", "nginx", "ufw", "unzip", "wget", "sudo"],
        description="Packages installed by the system setup step",
    )

    # External sources
    nodesource_setup_url: str = Field(
        default="https://deb.nodesource.com/setup_lts.x",
        description="NodeSource repository bootstrap script for Node.js LTS",
    )
    pocketbase_release_api: str = Field(
        default="https://api.github.com/repos/pocketbase/pocketbase/releases/latest",
        description="GitHub API endpoint describing the latest PocketBase release",
    )
    pocketbase_default_email: str = Field(
        default="admin@casawebster.com",
        description="Default offered for the PocketBase admin email",
    )

    # Timeouts
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    command_timeout_seconds: int = Field(default=900, ge=10)
    pocketbase_ready_timeout_seconds: float = Field(default=30.0, gt=0)

    # Continuous deployment
    deploy_branch: str = Field(default="main")
    git_author_name: str = Field(default="LXC Bootstrap")
    git_author_email: str = Field(default="bootstrap@casawebster.com")

    @field_validator("state_dir")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in paths."""
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def app_home(self) -> Path:
        """Home directory of the application user."""
        return Path(self.app_home_root) / self.app_user

    def get_state_path(self) -> Path:
        """Get the session state directory."""
        return Path(self.state_dir)


# Global singleton
_config: Optional[BootstrapConfig] = None


def get_config(**overrides) -> BootstrapConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        BootstrapConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = BootstrapConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
