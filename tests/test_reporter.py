"""Tests for deployment reports."""

import json

import pytest

from shipctl.core.exceptions import ShipCtlError
from shipctl.deploy.models import DeploymentResult, RunStatus
from shipctl.health.models import HealthCheckResult, HealthReport, HealthStatus
from shipctl.release.models import ReleaseMode, ReleaseOutcome, ReleaseStage
from shipctl.reporting.reporter import Reporter, quality_score, recommendations


def result(errors=(), warnings=(), duration=42.0, status=RunStatus.SUCCESS):
    return DeploymentResult(
        status=status,
        components_deployed=5,
        total_components=6,
        errors=list(errors),
        warnings=list(warnings),
        duration=duration,
    )


def failed_health():
    return HealthReport(
        results=[HealthCheckResult("hosting_accessibility", 1, True, HealthStatus.FAILED, "HTTP 503")]
    )


def test_quality_score():
    assert quality_score(None) == 100
    assert quality_score(result()) == 100
    assert quality_score(result(errors=["a"], warnings=["b", "c"])) == 86
    assert quality_score(result(errors=["e"] * 12)) == 0


class TestRecommendations:
    def test_clean_run_has_none(self):
        assert recommendations(result(), {}, None) == []

    def test_slow_run(self):
        recs = recommendations(result(duration=900), {}, None)
        assert [r.category for r in recs] == ["performance"]

    def test_low_quality(self):
        recs = recommendations(result(errors=["a", "b", "c"]), {}, None)
        assert recs[0].category == "quality"
        assert "70%" in recs[0].description

    def test_error_types(self):
        summary = {"by_type": {"QUOTA_EXCEEDED": 2, "AUTH_PROBLEM": 1, "UNKNOWN_ERROR": 3}}
        recs = recommendations(result(), summary, None)
        assert [r.category for r in recs] == ["quota", "auth", "review"]
        assert recs[2].description == "3 errors need manual review."

    def test_unhealthy(self):
        recs = recommendations(None, {}, failed_health())
        assert recs[0].category == "health"
        assert recs[0].actions == ["Check hosting_accessibility: HTTP 503"]


class TestReporter:
    def test_build_and_write(self, tmp_path):
        reporter = Reporter(tmp_path / "deploy-1")
        report = reporter.build(
            "deploy-1",
            deployment=result(errors=["functions batch 2: odd"], status=RunStatus.PARTIAL_FAILURE),
            error_summary={"total": 1, "by_type": {"UNKNOWN_ERROR": 1}, "resolved": 0, "unresolved": 1},
        )

        report_path, summary_path = reporter.write(report)

        data = json.loads(report_path.read_text())
        assert data["deployment_id"] == "deploy-1"
        assert data["status"] == "partial_failure"
        assert data["quality_score"] == 90
        assert data["deployment"]["success_rate"] == 83.3

        summary = summary_path.read_text()
        assert "Status:     PARTIAL_FAILURE" in summary
        assert "Components:     5/6" in summary
        assert "ERRORS BY TYPE" in summary
        assert "UNKNOWN_ERROR" in summary
        assert "[MEDIUM] Review Unclassified Errors" in summary

    def test_health_only_status(self, tmp_path):
        report = Reporter(tmp_path).build("health-1", health=failed_health())
        assert report["status"] == "critical_failure"
        assert report["deployment"] is None

        summary = Reporter(tmp_path).render_summary(report)
        assert "HEALTH: CRITICAL_FAILURE" in summary
        assert "hosting_accessibility" in summary
        assert "Duration" not in summary

    def test_from_rolled_back_outcome(self, tmp_path):
        outcome = ReleaseOutcome("prod-1", ReleaseMode.PRODUCTION, blue_green=True)
        outcome.deployment = result()
        outcome.canary_health = failed_health()
        outcome.rolled_back = True
        outcome.enter(ReleaseStage.ROLLED_BACK, "Traffic kept on blue")

        report = Reporter(tmp_path).build_from_outcome(outcome)

        assert report["status"] == "rolled_back"
        assert report["health"]["status"] == "critical_failure"
        assert report["release"]["stage"] == "rolled_back"
        assert report["release"]["events"][0]["message"] == "Traffic kept on blue"

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ShipCtlError, match="Failed to write deployment report"):
            Reporter(blocker / "run").write({"deployment_id": "x"})
