"""Command line entry point for recoverability posture assessments.

Usage:
    posture-assess [options]

Exit Codes:
    0   Assessment completed
    1   High severity findings present and --fail-on-high was given
    2   No results ingested, invalid arguments or internal error

Examples:
    # Assess every result file in a directory against two SLA platforms
    posture-assess --results-dir ./results --sla-platform Azure --sla-platform AWS

    # Assess a manual CSV with a 60 minute default RTO and keep history
    posture-assess --csv manual.csv --rto-target 60 --snapshot-dir ./history

    # Gate a pipeline on High findings
    posture-assess --results-dir ./results --fail-on-high --format json
"""

import argparse
import asyncio
import logging
import sys

from recoverability.core.config import get_settings
from recoverability.core.notifications import notify_assessment
from recoverability.posture.errors import NoResultsIngestedError
from recoverability.posture.exports import export_all
from recoverability.posture.ingestion import IngestionPlan
from recoverability.posture.reports import generate_report
from recoverability.posture.runner import AssessmentOptions, PostureAssessmentRunner
from recoverability.schemas.posture import AssessmentBundle
from recoverability.schemas.results import Platform

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HIGH_FINDINGS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="posture-assess",
        description="Assess recoverability posture from recovery validation results",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    sources = parser.add_argument_group("sources")
    sources.add_argument("--surebackup", action="append", default=[], metavar="PATH",
                         help="Generic per-VM test list JSON (can be repeated)")
    sources.add_argument("--verification", action="append", default=[], metavar="PATH",
                         help="Per-VM verification bundle JSON (can be repeated)")
    sources.add_argument("--restore-job", action="append", default=[], metavar="PATH",
                         help="Restore job bundle JSON (can be repeated)")
    sources.add_argument("--csv", action="append", default=[], metavar="PATH",
                         help="Manual results CSV (can be repeated)")
    sources.add_argument("--results-dir", help="Directory scanned for result files")

    assessment = parser.add_argument_group("assessment")
    assessment.add_argument("--organization", help="Organization identifier")
    assessment.add_argument("--sla-platform", action="append", dest="sla_platforms", default=[],
                            help="Platform that must be represented (can be repeated or comma separated)")
    assessment.add_argument("--rto-target", type=int, help="Default RTO target in minutes")
    assessment.add_argument("--stale-days", type=int, help="Evidence staleness window in days")

    history = parser.add_argument_group("history")
    history.add_argument("--snapshot-dir", help="Snapshot directory; enables trend tracking")
    history.add_argument("--snapshot-backend", choices=["json", "sqlite"])
    history.add_argument("--snapshot-db-url", help="Database URL for the sqlite backend")

    output = parser.add_argument_group("output")
    output.add_argument("--output-dir", help="Directory receiving CSV/JSON exports")
    output.add_argument("--no-export", action="store_true", help="Skip writing exports")
    output.add_argument("--format", choices=["text", "json", "markdown", "html"], default="text",
                        help="Report printed to stdout (default: text)")
    output.add_argument("--notify", action="store_true", help="Send the Teams summary")
    output.add_argument("--fail-on-high", action="store_true",
                        help="Exit with code 1 when High findings are present")
    output.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    return parser


def parse_platforms(values: list[str]) -> list[Platform]:
    """Parse repeated and comma separated platform arguments.

    Raises:
        ValueError: If a value names no known platform
    """
    platforms: list[Platform] = []
    for value in values:
        for item in value.split(","):
            if not item.strip():
                continue
            platform = Platform.parse(item)
            if platform is None:
                raise ValueError(
                    f"Invalid platform '{item.strip()}'. "
                    f"Valid platforms: {', '.join(p.value for p in Platform)}"
                )
            if platform not in platforms:
                platforms.append(platform)
    return platforms


def print_text_report(bundle: AssessmentBundle) -> None:
    """Print a human-readable summary."""
    s = bundle.summary
    print("\n" + "=" * 60)
    print(f"RECOVERABILITY POSTURE: {bundle.organization}")
    print("=" * 60)
    print(f"Run ID: {bundle.run_id}")
    print(f"Score: {bundle.score.overall_score} (Grade {bundle.score.grade})")
    for sub in bundle.score.sub_scores:
        print(f"  {sub.name:<11} {sub.score:>6}  x{sub.weight:<3} {sub.basis}")
    print()
    print(f"Platforms: {', '.join(p.value for p in s.platforms)}")
    print(f"VMs: {s.total_vms}  Tests: {s.total_tests}  Passed: {s.passed_tests}  Failed: {s.failed_tests}")
    print(f"Pass rate: {s.pass_rate}%  RTO compliance: {s.rto_compliance_rate}% "
          f"({s.rto_tagged_tests} tagged, avg {s.avg_rto_minutes} min)")
    print()

    for finding in bundle.findings:
        print(f"[{finding.severity.value}] {finding.title}")
        print(f"    {finding.detail}")
    if not bundle.findings:
        print("No findings.")

    print()
    if bundle.delta is not None:
        for m in bundle.delta.metrics:
            print(f"  {m.metric:<17} {m.prior:g} -> {m.current:g} ({m.change:+g})")
    else:
        print(f"Trend: {bundle.trend_status.value}")


def run(args: argparse.Namespace) -> int:
    """Run an assessment for parsed arguments and return the exit code."""
    settings = get_settings()

    try:
        sla_platforms = parse_platforms(args.sla_platforms) if args.sla_platforms else None
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    plan = IngestionPlan(
        surebackup_paths=args.surebackup,
        verification_paths=args.verification,
        restore_job_paths=args.restore_job,
        manual_csv_paths=args.csv,
        results_dir=args.results_dir,
    )
    if plan.is_empty:
        print("Error: no result sources given (use --results-dir or a source path)", file=sys.stderr)
        return EXIT_ERROR

    options = AssessmentOptions.from_settings(
        settings,
        organization=args.organization,
        sla_platforms=sla_platforms,
        default_rto_target_minutes=args.rto_target,
        stale_days=args.stale_days,
        snapshot_dir=args.snapshot_dir,
        snapshot_backend=args.snapshot_backend,
        snapshot_database_url=args.snapshot_db_url,
    )

    try:
        bundle = PostureAssessmentRunner(options).run(plan)
    except NoResultsIngestedError as e:
        print(f"Error: {e}", file=sys.stderr)
        for skipped in e.details.get("skipped", []):
            print(f"  skipped {skipped['location']}: {skipped['reason']}", file=sys.stderr)
        return EXIT_ERROR

    if not args.no_export:
        export_all(bundle, args.output_dir or settings.output_dir)

    if args.format == "text":
        print_text_report(bundle)
    else:
        print(generate_report(bundle, args.format))

    if args.notify:
        result = asyncio.run(notify_assessment(bundle))
        if not result["success"]:
            logger.warning(f"Notification not sent: {result.get('error')}")

    if args.fail_on_high and bundle.high_findings:
        return EXIT_HIGH_FINDINGS
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return run(args)
    except KeyboardInterrupt:
        print("\nAssessment interrupted by user", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        print(f"Error running assessment: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
