"""Pytest fixtures for shipctl tests."""

import json
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest
from click.testing import CliRunner

from shipctl.clients.platform import PlatformClient
from shipctl.config import DeploymentConfig, ProductionPolicy, QuotaConfig, ReleaseSettings, ShipCtlConfig
from shipctl.core.context import ShipCtlContext
from shipctl.core.exceptions import CommandError
from shipctl.core.output import OutputFormat
from shipctl.core.process import CommandResult

ENV_VARS = (
    "VALIDATION_MODE",
    "TARGET_ENVIRONMENT",
    "STRICT_MODE",
    "BLUE_GREEN_MODE",
    "ROLLBACK_VERSION",
    "DEPLOYMENT_MODE",
    "REQUIRED_SECRETS",
)

PROJECT_ID = "demo-project"


def platform_json(result: Any) -> str:
    return json.dumps({"status": "success", "result": result})


@dataclass
class Rule:
    pattern: str
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    raises: BaseException | None = None
    times: int | None = None


class FakeRunner:
    """CommandRunner stand-in answering from scripted rules.

    A rule matches when its pattern is a substring of the joined command;
    the most recently added matching rule wins. Rules with `times` stop
    matching once used up.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self._rules: list[Rule] = []

    def on(self, pattern: str, **kwargs: Any) -> "FakeRunner":
        self._rules.append(Rule(pattern, **kwargs))
        return self

    def _match(self, line: str) -> Rule | None:
        for rule in reversed(self._rules):
            if rule.pattern in line and (rule.times is None or rule.times > 0):
                if rule.times is not None:
                    rule.times -= 1
                return rule
        return None

    async def run(self, command, cwd=None, env=None, timeout=None, check=False) -> CommandResult:
        args = shlex.split(command) if isinstance(command, str) else list(command)
        line = " ".join(args)
        self.calls.append({"command": line, "cwd": cwd, "env": dict(env or {}), "timeout": timeout})

        rule = self._match(line) or Rule(line)
        if rule.raises is not None:
            raise rule.raises
        result = CommandResult(command=args, returncode=rule.returncode, stdout=rule.stdout, stderr=rule.stderr)
        if check and not result.ok:
            raise CommandError(result.output or "failed", command=args, returncode=result.returncode, stderr=rule.stderr)
        return result

    def commands(self, pattern: str = "") -> list[str]:
        return [c["command"] for c in self.calls if pattern in c["command"]]


class SleepRecorder:
    """Async sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment out of ReleaseSettings."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


def write_project(root: Path, functions: int = 7) -> Path:
    """Lay out a minimal project tree."""
    (root / "frontend" / "src").mkdir(parents=True)
    (root / "frontend" / "package.json").write_text(json.dumps({"scripts": {"build": "vite build"}}))
    (root / "frontend" / "package-lock.json").write_text("{}")
    (root / "frontend" / "src" / "main.tsx").write_text("export const app = 1;\n")

    source = root / "functions" / "src" / "functions"
    source.mkdir(parents=True)
    (root / "functions" / "package.json").write_text(json.dumps({"scripts": {"build": "tsc"}}))
    (root / "functions" / "package-lock.json").write_text("{}")
    for i in range(1, functions + 1):
        (source / f"fn{i:02d}.ts").write_text(f"export const fn{i:02d} = () => {i};\n")
    (source / "fn01.test.ts").write_text("test('x', () => {});\n")

    (root / "firestore.rules").write_text("allow read: if request.auth != null;\n")
    (root / "storage.rules").write_text("allow read: if request.auth != null;\n")
    (root / ".firebaserc").write_text(json.dumps({"projects": {"default": PROJECT_ID}}))
    (root / "firebase.json").write_text(
        json.dumps(
            {
                "hosting": {
                    "public": "frontend/dist",
                    "headers": [
                        {"source": "**", "headers": [{"key": "Strict-Transport-Security", "value": "max-age=31536000"}]}
                    ],
                },
                "functions": {"runtime": "nodejs20"},
                "firestore": {"rules": "firestore.rules"},
                "storage": {"rules": "storage.rules"},
            }
        )
    )
    (root / "cors.json").write_text(json.dumps([{"origin": ["https://demo-project.web.app"], "method": ["GET"]}]))
    return root


@pytest.fixture
def project(tmp_path: Path) -> Path:
    return write_project(tmp_path)


def make_config(
    root: Path,
    quota: QuotaConfig | None = None,
    production: ProductionPolicy | None = None,
    settings: ReleaseSettings | None = None,
    **deployment: Any,
) -> ShipCtlConfig:
    data = dict(deployment)
    if quota is not None:
        data["quota"] = quota
    return ShipCtlConfig(
        project_root=root,
        config_dir=root / "config",
        deployment=DeploymentConfig(**data),
        production=production or ProductionPolicy(),
        settings=settings or ReleaseSettings(),
    )


@pytest.fixture
def config(project: Path) -> ShipCtlConfig:
    return make_config(project, quota=QuotaConfig(default_batch_size=3))


def healthy_runner() -> FakeRunner:
    """Runner answering like a logged-in CLI for a healthy project."""
    return (
        FakeRunner()
        .on("node --version", stdout="v20.11.0\n")
        .on("git --version", stdout="git version 2.43.0\n")
        .on("firebase --version", stdout="13.0.0\n")
        .on("firebase login:list", stdout="Logged in as dev@example.com\n")
        .on("firebase use", stdout=f"{PROJECT_ID}\n")
        .on("projects:list", stdout=platform_json([{"projectId": PROJECT_ID}]))
        .on("functions:list", stdout=platform_json([{"name": "generateCV", "status": "ACTIVE"}]))
        .on("firestore:databases:list", stdout=platform_json([{"name": "(default)"}]))
        .on("storage:buckets:list", stdout=platform_json([{"name": f"{PROJECT_ID}.appspot.com"}]))
    )


@pytest.fixture
def runner() -> FakeRunner:
    return healthy_runner()


@pytest.fixture
def platform(config: ShipCtlConfig, runner: FakeRunner) -> PlatformClient:
    return PlatformClient(config, runner=runner)


def ok_transport(status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "http":
            return httpx.Response(301, headers={"location": str(request.url.copy_with(scheme="https"))})
        return httpx.Response(status_code, text="ok")

    return httpx.MockTransport(handler)


@pytest.fixture
def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ok_transport())


@pytest.fixture
def context(config: ShipCtlConfig, runner: FakeRunner, platform: PlatformClient, sleep: SleepRecorder) -> ShipCtlContext:
    """ShipCtl context wired to the fakes."""
    return ShipCtlContext(
        config=config,
        output_format=OutputFormat.TABLE,
        color=False,
        runner=runner,
        platform=platform,
        sleep=sleep,
    )
