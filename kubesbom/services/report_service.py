import json
from pathlib import Path
from typing import TextIO

import structlog
from rich.console import Console
from rich.table import Table

from kubesbom.models.options import ReportFormat
from kubesbom.models.report import Report
from kubesbom.services.encoder_service import CycloneDXEncoder

logger = structlog.get_logger('report_service')

SEVERITIES = ['CRITICAL', 'HIGH', 'MEDIUM', 'LOW', 'UNKNOWN']

_SEVERITY_STYLES = {
    'CRITICAL': 'bold magenta',
    'HIGH': 'bold red',
    'MEDIUM': 'yellow',
    'LOW': 'blue',
    'UNKNOWN': 'dim',
}


def render_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2)


def render_cyclonedx(report: Report, encoder: CycloneDXEncoder | None = None) -> str:
    if report.root_component is None:
        raise ValueError('report has no component tree to encode')
    encoder = encoder or CycloneDXEncoder()
    return encoder.encode_json(report.root_component)


def build_table(report: Report) -> Table:
    table = Table(title=f"Cluster: {report.cluster_name}", show_lines=False)
    table.add_column('Namespace', style='cyan')
    table.add_column('Kind')
    table.add_column('Name', style='bold')
    table.add_column('Status')
    for severity in SEVERITIES:
        table.add_column(severity, justify='right', style=_SEVERITY_STYLES[severity])

    for resource in report.resources:
        counts = resource.severity_counts()
        status = f"[red]error: {resource.error}[/red]" if resource.failed else '[green]ok[/green]'
        table.add_row(
            resource.namespace or '-',
            resource.kind,
            resource.name,
            status,
            *[str(counts.get(severity, 0)) for severity in SEVERITIES],
        )
    return table


def _write_table(report: Report, stream: TextIO | None) -> None:
    console = Console(file=stream, width=200 if stream else None)
    console.print(build_table(report))


def write_report(
    report: Report,
    report_format: ReportFormat,
    output: Path | None = None,
    encoder: CycloneDXEncoder | None = None,
) -> None:
    """Render a report in the requested format to a file, or stdout when output is None."""
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)

    if report_format == ReportFormat.TABLE:
        if output is None:
            _write_table(report, None)
        else:
            with open(output, 'w', encoding='utf-8') as f:
                _write_table(report, f)
    else:
        if report_format == ReportFormat.CYCLONEDX:
            content = render_cyclonedx(report, encoder)
        else:
            content = render_json(report)
        if output is None:
            print(content)
        else:
            output.write_text(content + '\n', encoding='utf-8')

    if output is not None:
        logger.info('Report written', format=str(report_format), path=str(output))
