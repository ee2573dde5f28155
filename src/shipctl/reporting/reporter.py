"""Per-run deployment reports."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jinja2 import BaseLoader, Environment
from tabulate import tabulate

from shipctl import __version__
from shipctl.core.exceptions import ShipCtlError
from shipctl.core.logging import get_logger
from shipctl.core.output import format_duration
from shipctl.deploy.models import DeploymentResult, RunStatus
from shipctl.health.models import HealthReport
from shipctl.release.models import ReleaseOutcome
from shipctl.validation.models import ValidationReport

logger = get_logger(__name__)

REPORT_FILENAME = "report.json"
SUMMARY_FILENAME = "summary.txt"

SLOW_DEPLOYMENT_SECONDS = 600
MIN_QUALITY_SCORE = 80

SUMMARY_TEMPLATE = """\
DEPLOYMENT SUMMARY REPORT
=========================
Deployment: {{ report.deployment_id }}
Generated:  {{ report.generated_at }}
Status:     {{ report.status | upper }}
{% if report.deployment %}
Duration:       {{ duration }}
Success rate:   {{ report.deployment.success_rate }}%
Components:     {{ report.deployment.components_deployed }}/{{ report.deployment.total_components }}
Quality score:  {{ report.quality_score }}/100
Errors:         {{ report.deployment.errors | length }}
Warnings:       {{ report.deployment.warnings | length }}
{% endif %}
{% if error_table %}
ERRORS BY TYPE
--------------
{{ error_table }}
{% endif %}
{% if report.health %}
HEALTH: {{ report.health.status | upper }}
--------------
{{ health_table }}
{% endif %}
{% if report.recommendations %}
RECOMMENDATIONS
---------------
{% for rec in report.recommendations %}
[{{ rec.priority | upper }}] {{ rec.title }}
  {{ rec.description }}
{% for action in rec.actions %}
  - {{ action }}
{% endfor %}
{% endfor %}
{% endif %}
"""


@dataclass
class Recommendation:
    category: str
    priority: str
    title: str
    description: str
    actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            "actions": self.actions,
        }


def quality_score(deployment: DeploymentResult | None) -> int:
    """100 minus 10 per error and 2 per warning, floored at 0."""
    if deployment is None:
        return 100
    return max(0, 100 - 10 * len(deployment.errors) - 2 * len(deployment.warnings))


def recommendations(
    deployment: DeploymentResult | None,
    error_summary: dict[str, Any],
    health: HealthReport | None,
) -> list[Recommendation]:
    """Next steps derived from the run's outcome."""
    recs: list[Recommendation] = []
    by_type = error_summary.get("by_type", {})

    if deployment is not None and deployment.duration > SLOW_DEPLOYMENT_SECONDS:
        recs.append(
            Recommendation(
                "performance",
                "high",
                "Reduce Deployment Time",
                "Deployment took longer than 10 minutes.",
                ["Review function sizes and dependencies", "Optimize build processes"],
            )
        )
    if deployment is not None and quality_score(deployment) < MIN_QUALITY_SCORE:
        recs.append(
            Recommendation(
                "quality",
                "medium",
                "Improve Deployment Quality",
                f"Quality score is {quality_score(deployment)}%. Address errors and warnings.",
                ["Fix deployment errors", "Address warning messages"],
            )
        )
    if by_type.get("QUOTA_EXCEEDED"):
        recs.append(
            Recommendation(
                "quota",
                "high",
                "Address Quota Issues",
                "Quota-related errors detected during deployment.",
                ["Lower the batch sizes in the quota config", "Deploy outside peak hours", "Request a quota increase"],
            )
        )
    if by_type.get("AUTH_PROBLEM"):
        recs.append(
            Recommendation(
                "auth",
                "high",
                "Fix Platform Authentication",
                "Authentication errors were not recoverable automatically.",
                ["Log in to the platform CLI again", "Check the service account key"],
            )
        )
    if by_type.get("UNKNOWN_ERROR"):
        recs.append(
            Recommendation(
                "review",
                "medium",
                "Review Unclassified Errors",
                f"{by_type['UNKNOWN_ERROR']} errors need manual review.",
                ["Inspect the deployment log"],
            )
        )
    if health is not None and not health.verdict.healthy:
        recs.append(
            Recommendation(
                "health",
                "high",
                "Investigate Failed Health Checks",
                f"Health verdict was {health.verdict.value}.",
                [f"Check {r.name}: {r.message}" for r in health.failed],
            )
        )
    return recs


class Reporter:
    """Writes report.json and summary.txt into a run directory."""

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)
        self._env = Environment(loader=BaseLoader(), trim_blocks=True, lstrip_blocks=True)

    def build(
        self,
        deployment_id: str,
        deployment: DeploymentResult | None = None,
        health: HealthReport | None = None,
        validation: ValidationReport | None = None,
        error_summary: dict[str, Any] | None = None,
        status: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Assemble the JSON report."""
        error_summary = error_summary or {}
        if status is None:
            if deployment is not None:
                status = deployment.status.value
            elif health is not None:
                status = health.verdict.value
            else:
                status = RunStatus.SUCCESS.value
        return {
            "deployment_id": deployment_id,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "status": status,
            "quality_score": quality_score(deployment),
            "deployment": deployment.to_dict() if deployment else None,
            "error_summary": error_summary,
            "health": health.to_dict() if health else None,
            "validation": validation.to_dict() if validation else None,
            "recommendations": [r.to_dict() for r in recommendations(deployment, error_summary, health)],
            **(extra or {}),
        }

    def build_from_outcome(self, outcome: ReleaseOutcome) -> dict[str, Any]:
        if outcome.success:
            status = "success"
        elif outcome.rolled_back:
            status = "rolled_back"
        else:
            status = "failed"
        return self.build(
            outcome.deployment_id,
            deployment=outcome.deployment,
            health=outcome.health or outcome.canary_health,
            validation=outcome.validation,
            error_summary=outcome.error_summary,
            status=status,
            extra={"release": outcome.to_dict()},
        )

    def render_summary(self, report: dict[str, Any]) -> str:
        """Text summary of a built report."""
        by_type = report.get("error_summary", {}).get("by_type", {})
        error_table = tabulate(sorted(by_type.items()), headers=["Type", "Count"]) if by_type else ""
        health_table = ""
        if report.get("health"):
            health_table = tabulate(
                [(r["name"], r["status"], "yes" if r["critical"] else "", r["message"]) for r in report["health"]["results"]],
                headers=["Check", "Status", "Critical", "Message"],
            )
        duration = format_duration(report["deployment"]["duration"]) if report.get("deployment") else ""
        template = self._env.from_string(SUMMARY_TEMPLATE)
        return template.render(report=report, error_table=error_table, health_table=health_table, duration=duration)

    def write(self, report: dict[str, Any]) -> tuple[Path, Path]:
        """Write both files.

        Returns:
            Paths of report.json and summary.txt
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            report_path = self.output_dir / REPORT_FILENAME
            summary_path = self.output_dir / SUMMARY_FILENAME
            report_path.write_text(json.dumps(report, indent=2, default=str) + "\n")
            summary_path.write_text(self.render_summary(report))
        except OSError as e:
            raise ShipCtlError(f"Failed to write deployment report: {e}", details={"dir": str(self.output_dir)})
        logger.info(f"Report written to {report_path}")
        return report_path, summary_path
