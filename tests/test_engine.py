"""Tests for the deployment engine."""

import asyncio

import pytest
from conftest import FakeRunner, healthy_runner, make_config

from shipctl.clients.platform import PlatformClient
from shipctl.config import DeploymentSection, QuotaConfig
from shipctl.deploy.engine import DeploymentEngine
from shipctl.deploy.models import Phase, RunStatus, SlotColor
from shipctl.recovery.engine import RecoveryEngine
from shipctl.recovery.models import ErrorType


def make_engine(config, runner, sleep, slot=None):
    platform = PlatformClient(config, runner=runner)
    recovery = RecoveryEngine(config, runner, platform, sleep=sleep)
    return DeploymentEngine(config, platform, runner, recovery, sleep=sleep, slot=slot, run_id="test-run")


class AddsFileOnRules(FakeRunner):
    """Healthy runner that drops a new source file while rules deploy."""

    def __init__(self, new_file):
        super().__init__()
        self._rules = healthy_runner()._rules
        self.new_file = new_file

    async def run(self, command, **kwargs):
        result = await super().run(command, **kwargs)
        if "firestore:rules" in " ".join(command):
            self.new_file.write_text("export const fn08 = () => 8;\n")
        return result


class TestHappyPath:
    def test_seven_functions_in_three_batches(self, config, runner, sleep):
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.status == RunStatus.SUCCESS
        assert result.batching_strategy.batch_count == 3
        batches = runner.commands("--only functions:")
        assert len(batches) == 3
        assert "functions:fn01,fn02,fn03 " in batches[0] + " "
        assert "functions:fn07 " in batches[2] + " "
        assert sleep.delays == [30.0, 30.0]
        # rules + storage + 3 batches + hosting
        assert result.total_components == 6
        assert result.components_deployed == 6
        assert result.success_rate == 100.0
        assert engine.progress().phase == Phase.DONE
        assert engine.progress().progress_percentage == 100.0

    def test_test_files_are_not_artifacts(self, config, runner, sleep):
        engine = make_engine(config, runner, sleep)
        names = engine.artifact_names(engine.discover_artifacts())
        assert names == [f"fn{i:02d}" for i in range(1, 8)]

    def test_phases_run_in_order(self, config, runner, sleep):
        asyncio.run(make_engine(config, runner, sleep).deploy())

        deploys = [c.split("--only ")[1].split()[0] for c in runner.commands("deploy --only")]
        assert deploys[0] == "firestore:rules"
        assert deploys[1] == "storage"
        assert all(d.startswith("functions:") for d in deploys[2:5])
        assert deploys[-1] == "hosting"

    def test_builds_frontend_when_missing(self, config, runner, sleep):
        asyncio.run(make_engine(config, runner, sleep).deploy())

        builds = [c for c in runner.calls if c["command"] == "npm run build"]
        assert len(builds) == 1
        assert builds[0]["cwd"] == config.path("frontend_dir")

    def test_skips_build_when_present(self, config, runner, sleep):
        config.path("hosting_build_dir").mkdir(parents=True)

        asyncio.run(make_engine(config, runner, sleep).deploy())

        assert runner.commands("npm run build") == []

    def test_missing_rules_are_not_counted(self, project, runner, sleep):
        (project / "storage.rules").unlink()
        config = make_config(project, quota=QuotaConfig(default_batch_size=3))

        result = asyncio.run(make_engine(config, runner, sleep).deploy())

        assert result.total_components == 5
        assert runner.commands("--only storage") == []

    def test_slot_targets_hosting_channel(self, config, runner, sleep):
        asyncio.run(make_engine(config, runner, sleep, slot=SlotColor.GREEN).deploy())

        hosting = [c for c in runner.calls if "--only hosting" in c["command"]]
        assert hosting[0]["command"].endswith("--only hosting:green")
        assert all(c["env"].get("DEPLOYMENT_SLOT") == "green" for c in runner.calls if "deploy" in c["command"])


class TestFailures:
    def test_permission_denied_aborts(self, config, sleep):
        runner = healthy_runner().on(
            "--only firestore:rules", returncode=1, stderr="Error: Permission denied for project"
        )
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.status == RunStatus.PARTIAL_FAILURE
        assert result.aborted is True
        assert result.components_deployed == 0
        assert "Permission denied" in result.abort_reason
        # Auth recovery succeeds, so the run restarts until the ceiling
        assert result.restarts == 3
        assert runner.commands("--only storage") == []
        assert {r.type for r in engine.recovery.history} == {ErrorType.AUTH_PROBLEM}

    def test_no_restart_when_recovery_fails(self, config, sleep):
        runner = (
            healthy_runner()
            .on("--only storage", returncode=1, stderr="bucket misconfigured")
        )
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.aborted is True
        assert result.restarts == 0
        assert result.components_deployed == 1
        assert result.errors == ["storage: bucket misconfigured"]

    def test_failed_batch_is_a_warning(self, config, sleep):
        runner = healthy_runner().on("functions:fn04,fn05,fn06", returncode=1, stderr="odd response")
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.aborted is False
        assert result.status == RunStatus.PARTIAL_FAILURE
        assert result.components_deployed == 5
        assert result.errors == ["functions batch 2: odd response"]
        assert result.warnings == ["Batch 2 failed but continuing: odd response"]
        assert runner.commands("--only hosting")
        # No wait after the failed batch
        assert sleep.delays == [30.0]

    def test_batch_retried_after_recovery(self, config, sleep):
        runner = healthy_runner().on("functions:fn01,fn02,fn03", returncode=1, stderr="Quota exceeded", times=1)
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.status == RunStatus.SUCCESS
        assert len(runner.commands("functions:fn01,fn02,fn03")) == 2
        assert result.components_deployed == 6
        assert engine.recovery.history[0].recovered is True

    def test_critical_batch_failure_aborts(self, config, sleep):
        runner = healthy_runner().on(
            "functions:fn04,fn05,fn06", returncode=1, stderr="Billing account required"
        )
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.aborted is True
        assert runner.commands("--only hosting") == []

    def test_hosting_failure_restarts_whole_run(self, config, sleep):
        runner = healthy_runner().on("--only hosting", returncode=1, stderr="Quota exceeded", times=1)

        result = asyncio.run(make_engine(config, runner, sleep).deploy())

        assert result.status == RunStatus.SUCCESS
        assert result.restarts == 1
        assert len(runner.commands("--only firestore:rules")) == 2
        assert result.components_deployed == result.total_components

    def test_restart_drops_errors_of_abandoned_attempt(self, config, sleep):
        runner = (
            healthy_runner()
            .on("functions:fn04,fn05,fn06", returncode=1, stderr="odd response", times=1)
            .on("--only hosting", returncode=1, stderr="Quota exceeded", times=1)
        )
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.status == RunStatus.SUCCESS
        assert result.restarts == 1
        assert result.errors == []
        assert result.warnings == []
        assert result.components_deployed == result.total_components == 6
        # Both failures are still in the recovery history
        assert [r.type for r in engine.recovery.history] == [ErrorType.UNKNOWN_ERROR, ErrorType.QUOTA_EXCEEDED]

    def test_network_backoff_grows_across_restarts(self, config, sleep):
        runner = healthy_runner().on(
            "--only firestore:rules", returncode=1, stderr="getaddrinfo ENOTFOUND api.example.net"
        )
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.aborted is True
        assert result.restarts == 3
        assert {r.type for r in engine.recovery.history} == {ErrorType.NETWORK_ISSUE}
        assert sleep.delays == [1.0, 2.0, 4.0, 8.0]

    def test_functions_follow_the_plan(self, config, sleep):
        source = config.path("functions_source_dir")
        runner = AddsFileOnRules(source / "fn08.ts")
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        assert result.status == RunStatus.SUCCESS
        assert result.components_deployed == 6
        assert not any("fn08" in c for c in runner.commands("--only functions:"))

    def test_resume_mode_continues_at_failed_phase(self, project, sleep):
        config = make_config(
            project,
            quota=QuotaConfig(default_batch_size=3),
            deployment=DeploymentSection(resume_mode="resume"),
        )
        runner = healthy_runner().on("--only hosting", returncode=1, stderr="Quota exceeded", times=1)

        result = asyncio.run(make_engine(config, runner, sleep).deploy())

        assert result.status == RunStatus.SUCCESS
        assert len(runner.commands("--only firestore:rules")) == 1
        assert len(runner.commands("--only hosting")) == 2
        assert result.components_deployed == 6

    def test_frontend_build_failure_is_recorded(self, config, sleep):
        runner = healthy_runner().on("npm run build", returncode=1, stderr="vite exploded")
        engine = make_engine(config, runner, sleep)

        result = asyncio.run(engine.deploy())

        # Hosting is last, so an unrecovered failure ends the run as partial
        assert result.aborted is False
        assert result.status == RunStatus.PARTIAL_FAILURE
        assert result.components_deployed == 5
        assert result.errors[0].startswith("hosting: Build failed")


def test_progress_before_run(config, runner, sleep):
    progress = make_engine(config, runner, sleep).progress()
    assert progress.phase == Phase.INITIALIZING
    assert progress.progress_percentage == 0.0


def test_state_rejects_moving_backwards():
    from shipctl.deploy.models import DeploymentState

    state = DeploymentState(phase=Phase.FUNCTIONS)
    with pytest.raises(ValueError):
        state.advance(Phase.RULES)


def test_state_rejects_overcounting():
    from shipctl.deploy.models import DeploymentState

    state = DeploymentState(total_components=1)
    state.record_deployed()
    with pytest.raises(ValueError):
        state.record_deployed()
