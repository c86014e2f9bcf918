"""Report generation for posture assessments.

Provides HTML, JSON, and markdown renderings of an assessment bundle with
the score breakdown, findings grouped by severity, and trend.
"""

import html
import json
import logging
from typing import Any

from recoverability.schemas.posture import (
    AssessmentBundle,
    FindingSeverity,
    TrendStatus,
)

logger = logging.getLogger(__name__)

SEVERITY_EMOJI = {
    FindingSeverity.HIGH: "🔴",
    FindingSeverity.MEDIUM: "🟠",
    FindingSeverity.LOW: "🟡",
    FindingSeverity.INFO: "🟢",
}

METRIC_LABELS = {
    "compliance_score": "Compliance score",
    "pass_rate": "Pass rate (%)",
    "total_vms": "VMs tested",
    "finding_count": "Findings",
}


def _format_change(change: float) -> str:
    return f"{change:+g}"


class ReportGenerator:
    """Generate reports from an assessment bundle."""

    def __init__(self, bundle: AssessmentBundle):
        """Initialize the report generator.

        Args:
            bundle: The assessment bundle to render
        """
        self.bundle = bundle

    def to_json(self, pretty: bool = True) -> str:
        """Generate JSON report.

        Results are left out; they are available in the results export.

        Args:
            pretty: Whether to pretty-print the JSON

        Returns:
            JSON string representation of the report
        """
        b = self.bundle
        data = {
            "organization": b.organization,
            "run_id": b.run_id,
            "generated_at": b.generated_at.isoformat(),
            "summary": b.summary.metrics().model_dump(mode="json"),
            "score": {
                "overall": b.score.overall_score,
                "grade": b.score.grade,
                "sub_scores": [s.model_dump() for s in b.score.sub_scores],
            },
            "findings": [f.model_dump(mode="json") for f in b.findings],
            "trend_status": b.trend_status.value,
            "delta": b.delta.model_dump(mode="json") if b.delta else None,
            "sources": [s.model_dump(mode="json") for s in b.sources],
            "field_defaults": len(b.field_defaults),
            "frameworks": b.frameworks,
        }

        if pretty:
            return json.dumps(data, indent=2)
        return json.dumps(data)

    def to_markdown(self) -> str:
        """Generate Markdown report.

        Returns:
            Markdown string representation of the report
        """
        b = self.bundle
        s = b.summary
        lines = [
            f"# Recoverability Posture: {b.organization}",
            "",
            f"**Run ID:** `{b.run_id}`",
            f"**Generated:** {b.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
            f"**Frameworks:** {', '.join(b.frameworks) or 'n/a'}",
            "",
            f"## Score: {b.score.overall_score} (Grade {b.score.grade})",
            "",
            "| Dimension | Score | Weight | Basis |",
            "|-----------|-------|--------|-------|",
        ]
        for sub in b.score.sub_scores:
            lines.append(f"| {sub.name} | {sub.score} | {sub.weight} | {sub.basis} |")

        lines.extend([
            "",
            "## Summary",
            "",
            f"- **Platforms:** {', '.join(p.value for p in s.platforms)}",
            f"- **VMs tested:** {s.total_vms}",
            f"- **Tests:** {s.total_tests} ({s.passed_tests} passed, {s.failed_tests} failed)",
            f"- **Pass rate:** {s.pass_rate}%",
            f"- **RTO compliance:** {s.rto_compliance_rate}% of {s.rto_tagged_tests} tagged tests "
            f"(average {s.avg_rto_minutes} min)",
            "",
        ])

        lines.extend(["## Findings", ""])
        if not b.findings:
            lines.extend(["No findings.", ""])
        for severity, findings in b.findings_by_severity().items():
            if not findings:
                continue
            lines.extend([f"### {SEVERITY_EMOJI[severity]} {severity.value}", ""])
            for finding in findings:
                lines.extend([
                    f"- **{finding.title}** ({finding.category})",
                    f"  - {finding.detail}",
                    f"  - Recommendation: {finding.recommendation}",
                    f"  - Framework: {finding.framework}",
                ])
            lines.append("")

        lines.extend(["## Trend", ""])
        if b.trend_status == TrendStatus.DISABLED:
            lines.append("Trend tracking is not configured.")
        elif b.delta is None:
            lines.append("First assessment for this organization; baseline established.")
        else:
            lines.extend([
                f"Compared with run `{b.delta.prior_run_id}` "
                f"({b.delta.prior_created_at.strftime('%Y-%m-%d %H:%M:%S')} UTC).",
                "",
                "| Metric | Prior | Current | Change |",
                "|--------|-------|---------|--------|",
            ])
            for m in b.delta.metrics:
                label = METRIC_LABELS.get(m.metric, m.metric)
                lines.append(f"| {label} | {m.prior:g} | {m.current:g} | {_format_change(m.change)} |")
        lines.append("")

        skipped = [src for src in b.sources if src.reason]
        if skipped:
            lines.extend(["## Skipped Sources", ""])
            for src in skipped:
                lines.append(f"- `{src.location}` ({src.kind.value}): {src.reason}")
            lines.append("")

        return "\n".join(lines)

    def to_html(self, include_details: bool = True) -> str:
        """Generate HTML report fragment.

        Args:
            include_details: Whether to include finding details

        Returns:
            HTML string representation of the report
        """
        b = self.bundle
        s = b.summary
        esc = html.escape

        out = f"""
<div class="posture-report">
    <h2>Recoverability Posture: {esc(b.organization)}</h2>
    <p class="report-meta">
        <strong>Run ID:</strong> {esc(b.run_id)}<br>
        <strong>Generated:</strong> {b.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC<br>
    </p>

    <div class="summary-cards">
        <div class="summary-card grade grade-{esc(b.score.grade.lower())}">
            <span class="count">{esc(b.score.grade)}</span>
            <span class="label">Score {b.score.overall_score}</span>
        </div>
        <div class="summary-card">
            <span class="count">{s.pass_rate}%</span>
            <span class="label">Pass rate</span>
        </div>
        <div class="summary-card">
            <span class="count">{s.rto_compliance_rate}%</span>
            <span class="label">RTO compliance</span>
        </div>
        <div class="summary-card">
            <span class="count">{s.total_vms}</span>
            <span class="label">VMs tested</span>
        </div>
    </div>
"""

        out += '\n    <table class="score-breakdown">\n'
        out += "        <tr><th>Dimension</th><th>Score</th><th>Weight</th><th>Basis</th></tr>\n"
        for sub in b.score.sub_scores:
            out += (
                f"        <tr><td>{esc(sub.name)}</td><td>{sub.score}</td>"
                f"<td>{sub.weight}</td><td>{esc(sub.basis)}</td></tr>\n"
            )
        out += "    </table>\n"

        if include_details:
            for severity, findings in b.findings_by_severity().items():
                if not findings:
                    continue
                out += f"\n    <h3>{SEVERITY_EMOJI[severity]} {esc(severity.value)}</h3>\n"
                out += '    <ul class="finding-list">\n'
                for finding in findings:
                    out += f"""
        <li class="finding {esc(severity.value.lower())}">
            <span class="title">{esc(finding.title)}</span>
            <span class="detail">{esc(finding.detail)}</span>
            <span class="recommendation">{esc(finding.recommendation)}</span>
            <span class="framework">{esc(finding.framework)}</span>
        </li>
"""
                out += "    </ul>\n"

        if b.delta is not None:
            out += '\n    <table class="trend">\n'
            out += "        <tr><th>Metric</th><th>Prior</th><th>Current</th><th>Change</th></tr>\n"
            for m in b.delta.metrics:
                out += (
                    f"        <tr><td>{esc(METRIC_LABELS.get(m.metric, m.metric))}</td>"
                    f"<td>{m.prior:g}</td><td>{m.current:g}</td><td>{_format_change(m.change)}</td></tr>\n"
                )
            out += "    </table>\n"
        elif b.trend_status == TrendStatus.BASELINE:
            out += '\n    <p class="trend">Baseline established.</p>\n'

        out += "</div>"
        return out

    def get_summary_statistics(self) -> dict[str, Any]:
        """Get headline statistics for dashboards and notifications."""
        b = self.bundle
        grouped = b.findings_by_severity()
        return {
            "organization": b.organization,
            "run_id": b.run_id,
            "overall_score": b.score.overall_score,
            "grade": b.score.grade,
            "pass_rate": b.summary.pass_rate,
            "rto_compliance_rate": b.summary.rto_compliance_rate,
            "total_vms": b.summary.total_vms,
            "total_tests": b.summary.total_tests,
            "findings": {severity.value: len(items) for severity, items in grouped.items()},
            "trend_status": b.trend_status.value,
        }


def generate_report(
    bundle: AssessmentBundle,
    format: str = "json",
) -> str:
    """Generate a report in the specified format.

    Args:
        bundle: The assessment bundle to render
        format: Output format ('json', 'markdown', or 'html')

    Returns:
        Formatted report string

    Raises:
        ValueError: If an unsupported format is specified
    """
    generator = ReportGenerator(bundle)

    format_mapping = {
        "json": generator.to_json,
        "markdown": generator.to_markdown,
        "md": generator.to_markdown,
        "html": generator.to_html,
    }

    if format not in format_mapping:
        raise ValueError(
            f"Unsupported format: {format}. "
            f"Supported formats: {', '.join(format_mapping.keys())}"
        )

    return format_mapping[format]()
