from pathlib import Path

import structlog
import typer

from kubesbom.core.decorators import handle_errors
from kubesbom.core.storage import load_artifacts
from kubesbom.models.options import ReportFormat
from kubesbom.models.options import ScanOptions
from kubesbom.services.report_service import write_report
from kubesbom.services.scan_service import Scanner

logger = structlog.get_logger('sbom_command')


@handle_errors
def main(
    artifacts_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help='Collected artifacts (JSON or JSONL)',
    ),
    cluster: str = typer.Option(..., '--cluster', '-c', help='Cluster name'),
    output: Path | None = typer.Option(None, '--output', '-o', help='Output file'),
):
    """
    Generate a CycloneDX SBOM of the cluster inventory.
    Needs no scanner binary: only node and pod inventory is used.
    """
    artifacts = load_artifacts(artifacts_file)
    options = ScanOptions(format=ReportFormat.CYCLONEDX, quiet=True)
    report = Scanner(cluster, None, options).scan(artifacts)
    write_report(report, ReportFormat.CYCLONEDX, output)
    logger.debug('SBOM generated', cluster=cluster, artifacts=len(artifacts))
