"""
External command boundary.

Every package-manager, process-supervisor and git call goes through
CommandRunner. Commands are argument lists, never shell strings; running a
command as the application user wraps the list with ``runuser -l`` and
quotes it with ``shlex``.

Failures raise CommandFailed unless the caller passes
``ignore_failure=True``. That flag is the only way to treat a failing
command as harmless, and each action documents where it uses it.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from lxcbootstrap.errors import CommandFailed, ExternalToolUnavailable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class CommandResult:
    """Outcome of one external command."""
    cmd: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def user_command(user: str, cmd: Sequence[str], cwd: Optional[PathLike] = None) -> List[str]:
    """
    Build a command that runs ``cmd`` in a login shell of ``user``.

    A login shell is needed so tools like pm2 and npm see the user's HOME.
    """
    script = shlex.join([str(c) for c in cmd])
    if cwd is not None:
        script = f"cd {shlex.quote(str(cwd))} && {script}"
    return ["runuser", "-l", user, "-c", script]


class CommandRunner:
    """
    Run external commands with consistent error handling.

    Args:
        timeout: Seconds before a command is killed
    """

    def __init__(self, timeout: int = 900):
        self.timeout = timeout

    def which(self, tool: str) -> bool:
        """Check if ``tool`` is available in PATH."""
        return shutil.which(tool) is not None

    def require_tool(self, tool: str, hint: str = "") -> None:
        """Raise ExternalToolUnavailable when ``tool`` is not in PATH."""
        if not self.which(tool):
            raise ExternalToolUnavailable(tool, hint=hint)

    def run(
        self,
        cmd: Sequence[str],
        *,
        user: Optional[str] = None,
        cwd: Optional[PathLike] = None,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        ignore_failure: bool = False,
        context: str = "",
    ) -> CommandResult:
        """
        Run a command.

        Args:
            cmd: Program and arguments
            user: Run as this user through a login shell
            cwd: Working directory
            input_text: Data written to stdin
            env: Extra environment variables (merged over the current environment)
            ignore_failure: Return a failed result instead of raising
            context: Description used in error messages

        Returns:
            CommandResult

        Raises:
            CommandFailed: Non-zero exit and ``ignore_failure`` is False
            ExternalToolUnavailable: The program does not exist
        """
        argv = [str(c) for c in cmd]
        if user is not None:
            argv = user_command(user, argv, cwd)
            cwd = None

        logger.debug(f"Running: {' '.join(argv)}")
        result = self._execute(argv, cwd=cwd, input_text=input_text, env=env)

        if not result.ok:
            if ignore_failure:
                logger.warning(
                    f"Ignoring failure of {' '.join(argv)} (exit {result.returncode})"
                    + (f": {context}" if context else "")
                )
                return result
            raise CommandFailed(argv, result.returncode, result.stdout, result.stderr, context)

        return result

    def succeeds(self, cmd: Sequence[str], *, user: Optional[str] = None, cwd: Optional[PathLike] = None) -> bool:
        """Probe: True when ``cmd`` exits 0. Never raises for a non-zero exit."""
        argv = [str(c) for c in cmd]
        if user is not None:
            argv = user_command(user, argv, cwd)
            cwd = None
        try:
            return self._execute(argv, cwd=cwd, input_text=None, env=None).ok
        except ExternalToolUnavailable:
            return False

    def _execute(
        self,
        argv: List[str],
        cwd: Optional[PathLike],
        input_text: Optional[str],
        env: Optional[Dict[str, str]],
    ) -> CommandResult:
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        try:
            completed = subprocess.run(
                argv,
                cwd=cwd,
                input=input_text,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ExternalToolUnavailable(argv[0])
        except subprocess.TimeoutExpired as e:
            raise CommandFailed(
                argv,
                -1,
                stderr=f"Timed out after {self.timeout}s",
                context=str(e),
            )

        return CommandResult(
            cmd=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
