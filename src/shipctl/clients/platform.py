"""Hosting platform client wrapping the platform CLI."""

import json
from collections.abc import Mapping
from typing import Any

from shipctl.config import ShipCtlConfig
from shipctl.core.exceptions import CommandError, CommandTimeoutError, PlatformError
from shipctl.core.logging import get_logger
from shipctl.core.process import CommandResult, CommandRunner

logger = get_logger(__name__)

NOT_LOGGED_IN_MARKERS = ("no accounts", "no authorized accounts", "not logged in")


class PlatformClient:
    """Client for the hosting platform CLI.

    Every call runs the CLI as a child process in the project root with a
    bounded timeout. Non-zero exits raise PlatformError; timeouts raise
    CommandTimeoutError.
    """

    def __init__(self, config: ShipCtlConfig, runner: CommandRunner | None = None):
        self._config = config
        self._platform = config.deployment.platform
        self._runner = runner or CommandRunner(default_timeout=self._platform.command_timeout)

    @property
    def executable(self) -> str:
        return self._platform.executable

    async def _run(
        self,
        *args: str,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        command = [self.executable, *args]
        try:
            result = await self._runner.run(
                command,
                cwd=self._config.project_root,
                env=env,
                timeout=timeout or self._platform.command_timeout,
            )
        except CommandTimeoutError:
            raise
        except CommandError as e:
            raise PlatformError(e.message, command=command, returncode=e.returncode)

        if not result.ok:
            raise PlatformError(
                result.output or f"{' '.join(args[:2])} exited with code {result.returncode}",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    async def _json(self, *args: str, timeout: float | None = None) -> Any:
        result = await self._run(*args, "--json", timeout=timeout)
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise PlatformError(f"Unparseable output from {' '.join(args)}: {e}", command=result.command)
        # The CLI wraps results as {"status": ..., "result": ...}
        if isinstance(data, dict) and "result" in data:
            if data.get("status") == "error":
                raise PlatformError(str(data.get("error", "unknown error")), command=result.command)
            return data["result"]
        return data

    async def version(self) -> str:
        result = await self._run("--version")
        return result.stdout.strip()

    async def login_list(self) -> str:
        result = await self._run("login:list")
        return result.stdout

    async def is_logged_in(self) -> bool:
        output = (await self.login_list()).lower()
        return not any(marker in output for marker in NOT_LOGGED_IN_MARKERS)

    async def active_project(self) -> str | None:
        """Project selected with `use`, None when nothing is active."""
        result = await self._run("use")
        line = result.stdout.strip().splitlines()
        if not line:
            return None
        value = line[-1].strip()
        if "no active project" in value.lower():
            return None
        return value

    def project_id(self) -> str | None:
        """Default project from the project alias file."""
        path = self._config.path("project_alias_file")
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read {path}: {e}")
            return None
        projects = data.get("projects") or {}
        return projects.get("default") or next(iter(projects.values()), None)

    async def list_projects(self) -> list[dict[str, Any]]:
        return list(await self._json("projects:list") or [])

    async def list_functions(self) -> list[dict[str, Any]]:
        return list(await self._json("functions:list") or [])

    async def list_databases(self) -> list[dict[str, Any]]:
        return list(await self._json("firestore:databases:list") or [])

    async def list_buckets(self) -> list[dict[str, Any]]:
        return list(await self._json("storage:buckets:list") or [])

    async def access_secret(self, name: str) -> str:
        """Read a secret value from the managed secret store."""
        result = await self._run("functions:secrets:access", name)
        return result.stdout.strip()

    async def deploy(
        self,
        only: str,
        force: bool = False,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Deploy one target, e.g. `firestore:rules` or `functions:a,b`.

        Args:
            only: Value for --only
            force: Pass --force
            env: Extra environment for the child process
            timeout: Ceiling in seconds; the child is killed when exceeded

        Returns:
            CommandResult of the finished deploy
        """
        args = ["deploy", "--only", only]
        if force:
            args.append("--force")
        logger.debug(f"Deploying {only}")
        return await self._run(*args, timeout=timeout, env=env)

    async def clone_hosting(self, source: str, target: str, timeout: float | None = None) -> CommandResult:
        """Copy a hosting release from one site/channel to another."""
        return await self._run("hosting:clone", source, target, timeout=timeout)

    def hosting_url(self, project_id: str, site: str | None = None) -> str:
        return f"https://{site or project_id}.{self._platform.hosting_domain}"

    def functions_base_url(self, project_id: str) -> str:
        return f"https://{self._platform.region}-{project_id}.{self._platform.functions_domain}"
