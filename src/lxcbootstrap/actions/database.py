"""
Database provisioning: PocketBase (DB_CHOICE=1) or PostgreSQL (DB_CHOICE=2).

Exactly one of the two actions applies to a session; the other is skipped
as not applicable and never blocks the run.
"""

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Dict, Mapping

from lxcbootstrap.actions.base import ActionContext, ActionResult, ProvisioningAction, action_registry
from lxcbootstrap.actions.system import APT_ENV
from lxcbootstrap.errors import StepActionFailed
from lxcbootstrap.files import atomic_write, ensure_dir, render_pm2_ecosystem
from lxcbootstrap.net import download_file, fetch_json, wait_until_healthy
from lxcbootstrap.questions import (
    DB_PASSWORD,
    DB_USERNAME,
    POCKETBASE_EMAIL,
    POCKETBASE_PASSWORD,
    uses_pocketbase,
    uses_postgresql,
)

logger = logging.getLogger(__name__)

POCKETBASE_PROCESS = "pocketbase"
RELEASE_ASSET_SUFFIX = "_linux_amd64.zip"


def pocketbase_asset_url(release: Mapping[str, Any]) -> str:
    """
    Pick the linux/amd64 archive from a GitHub release description.

    Falls back to the conventional download URL built from ``tag_name``
    when the release lists no matching asset.
    """
    for asset in release.get("assets") or []:
        name = asset.get("name", "")
        if name.endswith(RELEASE_ASSET_SUFFIX) and asset.get("browser_download_url"):
            return asset["browser_download_url"]

    tag = release.get("tag_name")
    if not tag:
        raise StepActionFailed("PocketBase release description has no tag_name")
    version = tag[1:] if tag.startswith("v") else tag
    return (
        "https://github.com/pocketbase/pocketbase/releases/download/"
        f"{tag}/pocketbase_{version}{RELEASE_ASSET_SUFFIX}"
    )


def pocketbase_ecosystem(pb_dir: Path, port: int) -> Dict[str, Any]:
    return {
        "name": POCKETBASE_PROCESS,
        "cwd": str(pb_dir),
        "script": "./pocketbase",
        "args": f"serve --http=0.0.0.0:{port}",
        "instances": 1,
        "exec_mode": "fork",
    }


@action_registry.register("pocketbase_setup")
class PocketBaseSetup(ProvisioningAction):
    """
    Install PocketBase under the application user and run it with PM2.

    Superuser creation is best-effort (``ignore_failure``): PocketBase
    rejects it when the account cannot be written, and the admin can still
    be created from the web UI.
    """

    description = "Install PocketBase and create its superuser"
    requires = (POCKETBASE_EMAIL, POCKETBASE_PASSWORD)

    def applies(self, values: Mapping[str, str]) -> bool:
        return uses_pocketbase(values)

    def execute(self, context: ActionContext) -> ActionResult:
        settings = context.settings
        commands = context.commands
        user = settings.app_user
        email = context.value(POCKETBASE_EMAIL, self.name)
        password = context.value(POCKETBASE_PASSWORD, self.name)

        pb_dir = ensure_dir(settings.app_home / "pocketbase")
        binary = pb_dir / "pocketbase"
        if binary.exists():
            logger.info("PocketBase binary already present")
        else:
            self._install_binary(context, pb_dir)

        atomic_write(
            pb_dir / "ecosystem.config.cjs",
            render_pm2_ecosystem(pocketbase_ecosystem(pb_dir, settings.pocketbase_port)),
            mode=0o644,
        )
        context.give_to_app_user(pb_dir)

        if commands.succeeds(["pm2", "describe", POCKETBASE_PROCESS], user=user):
            logger.info("PocketBase already managed by PM2")
        else:
            commands.run(
                ["pm2", "start", "ecosystem.config.cjs"],
                user=user,
                cwd=pb_dir,
                context="Starting PocketBase",
            )

        health_url = f"http://127.0.0.1:{settings.pocketbase_port}/api/health"
        if not wait_until_healthy(context.http_factory, health_url, settings.pocketbase_ready_timeout_seconds):
            raise StepActionFailed(
                f"PocketBase did not answer {health_url} within "
                f"{settings.pocketbase_ready_timeout_seconds:g}s"
            )

        commands.run(
            ["./pocketbase", "superuser", "upsert", email, password],
            user=user,
            cwd=pb_dir,
            ignore_failure=True,
            context="create the superuser from the admin UI instead",
        )

        return self.succeeded("PocketBase running", port=settings.pocketbase_port)

    def _install_binary(self, context: ActionContext, pb_dir: Path) -> None:
        release = fetch_json(context.http_factory, context.settings.pocketbase_release_api)
        url = pocketbase_asset_url(release)
        logger.info(f"Installing PocketBase {release.get('tag_name', '')}")

        with tempfile.TemporaryDirectory(prefix="lxc-bootstrap-") as tmp:
            archive = download_file(context.http_factory, url, Path(tmp) / "pocketbase.zip")
            try:
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(pb_dir)
            except zipfile.BadZipFile as e:
                raise StepActionFailed(f"Downloaded PocketBase archive is corrupt: {url}", cause=e) from e

        binary = pb_dir / "pocketbase"
        if not binary.exists():
            raise StepActionFailed(f"PocketBase archive {url} did not contain a pocketbase binary")
        os.chmod(binary, 0o755)


@action_registry.register("postgresql_setup")
class PostgresqlSetup(ProvisioningAction):
    """
    Install PostgreSQL and create the application role and database.

    Role and database are created only when the catalog does not list them;
    the password is reset on every run so a changed answer takes effect.
    """

    description = "Install PostgreSQL and create the application database"
    requires = (DB_USERNAME, DB_PASSWORD)

    def applies(self, values: Mapping[str, str]) -> bool:
        return uses_postgresql(values)

    def execute(self, context: ActionContext) -> ActionResult:
        commands = context.commands
        username = context.value(DB_USERNAME, self.name)
        password = context.value(DB_PASSWORD, self.name)
        database = f"{username}_db"

        if commands.which("psql"):
            logger.info("PostgreSQL client already installed")
        else:
            commands.run(
                ["apt-get", "install", "-y", "postgresql", "postgresql-contrib"],
                env=APT_ENV,
                context="Installing PostgreSQL",
            )
        commands.run(["systemctl", "start", "postgresql"])
        commands.run(["systemctl", "enable", "postgresql"])

        if self._catalog_has(commands, "SELECT 1 FROM pg_roles WHERE rolname = :'name';", username):
            logger.info(f"Role {username} already exists")
        else:
            commands.run(["createuser", username], user="postgres", context=f"Creating role {username}")

        if self._catalog_has(commands, "SELECT 1 FROM pg_database WHERE datname = :'name';", database):
            logger.info(f"Database {database} already exists")
        else:
            commands.run(
                ["createdb", database, "-O", username],
                user="postgres",
                context=f"Creating database {database}",
            )

        commands.run(
            ["psql", "-v", "ON_ERROR_STOP=1", "-v", f"name={username}", "-v", f"password={password}", "-f", "-"],
            user="postgres",
            input_text="ALTER ROLE :\"name\" WITH LOGIN PASSWORD :'password';\n",
            context=f"Setting the password of {username}",
        )

        return self.succeeded("PostgreSQL ready", database=database, user=username)

    def _catalog_has(self, commands: Any, query: str, name: str) -> bool:
        result = commands.run(
            ["psql", "-tA", "-v", "ON_ERROR_STOP=1", "-v", f"name={name}", "-f", "-"],
            user="postgres",
            input_text=query + "\n",
        )
        return result.stdout.strip() == "1"
