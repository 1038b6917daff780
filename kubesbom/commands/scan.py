from pathlib import Path

import structlog
import typer

from kubesbom.core.config import get_config
from kubesbom.core.decorators import handle_errors
from kubesbom.core.logging import ScanLogger
from kubesbom.core.storage import load_artifacts
from kubesbom.models.options import ReportFormat
from kubesbom.models.options import ScannerType
from kubesbom.models.options import ScanOptions
from kubesbom.services.report_service import write_report
from kubesbom.services.scan_service import Scanner
from kubesbom.services.trivy_service import TrivyRunner

logger = structlog.get_logger('scan_command')


def parse_scanners(value: str) -> frozenset[ScannerType]:
    scanners = set()
    for name in value.split(','):
        name = name.strip().lower()
        if not name:
            continue
        try:
            scanners.add(ScannerType(name))
        except ValueError:
            choices = ', '.join(str(s) for s in ScannerType)
            raise typer.BadParameter(f"unknown scanner {name!r} (choose from {choices})")
    return frozenset(scanners)


def parse_severities(value: str | None) -> tuple[str, ...]:
    if not value:
        return get_config().scan.severities
    return tuple(s.strip().upper() for s in value.split(',') if s.strip())


@handle_errors
def main(
    artifacts_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help='Collected artifacts (JSON or JSONL)',
    ),
    cluster: str = typer.Option(..., '--cluster', '-c', help='Cluster name'),
    report_format: ReportFormat = typer.Option(
        ReportFormat.TABLE, '--format', '-f', help='Report format',
    ),
    scanners: str = typer.Option(
        'vuln,misconfig', help='Comma-separated scanners (vuln,secret,misconfig,rbac)',
    ),
    severity: str | None = typer.Option(
        None, help='Comma-separated severities to report',
    ),
    ignore_file: Path | None = typer.Option(
        None, exists=True, dir_okay=False, help='File listing finding IDs to ignore',
    ),
    parallel: int | None = typer.Option(
        None, help='Number of concurrent workers (0 means one)',
    ),
    output: Path | None = typer.Option(None, '--output', '-o', help='Output file'),
    quiet: bool = typer.Option(False, '--quiet', '-q', help='Hide the progress bar'),
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
):
    """
    Scan cluster artifacts for vulnerabilities and misconfigurations.
    """
    config = get_config()
    options = ScanOptions(
        scanners=parse_scanners(scanners),
        format=report_format,
        parallel=parallel if parallel is not None else config.scan.parallel,
        severities=parse_severities(severity),
        ignore_file=ignore_file,
        debug=debug,
        quiet=quiet,
    )

    artifacts = load_artifacts(artifacts_file)
    logger.info(
        'Loaded artifacts', cluster=cluster, count=len(artifacts),
        format=str(report_format),
    )

    runner = None if report_format == ReportFormat.CYCLONEDX else TrivyRunner()
    scanner = Scanner(cluster, runner, options, log=ScanLogger('scanner', debug=debug))
    report = scanner.scan(artifacts)
    write_report(report, report_format, output)
