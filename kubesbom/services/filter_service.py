from pathlib import Path

from kubesbom.core.exceptions import FilterError
from kubesbom.core.logging import get_logger
from kubesbom.models.options import ScanOptions
from kubesbom.models.report import Misconfiguration
from kubesbom.models.report import Result
from kubesbom.models.report import ScanResult
from kubesbom.models.report import Secret
from kubesbom.models.report import Vulnerability

logger = get_logger('filter_service')


def load_ignore_file(path: Path) -> set[str]:
    """
    Read finding IDs from an ignore file.

    One ID per line; '#' starts a comment; anything after the first
    whitespace (e.g. "exp:2024-01-01") is ignored.
    """
    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        raise FilterError(f"failed to read ignore file {path}: {e}") from e

    ids = set()
    for line in lines:
        line = line.split('#', 1)[0].strip()
        if line:
            ids.add(line.split()[0])
    return ids


def _finding_ids(finding: Vulnerability | Misconfiguration | Secret) -> set[str]:
    if isinstance(finding, Vulnerability):
        return {finding.vulnerability_id}
    if isinstance(finding, Misconfiguration):
        return {finding.id, finding.avd_id} - {''}
    return {finding.rule_id}


class ResultFilter:
    """Keep findings of the requested severities that are not ignored."""

    def __init__(self, severities: tuple[str, ...], ignored: set[str] | None = None):
        self.severities = {s.upper() for s in severities}
        self.ignored = ignored or set()

    @classmethod
    def from_options(cls, options: ScanOptions) -> 'ResultFilter':
        ignored = load_ignore_file(options.ignore_file) if options.ignore_file else set()
        return cls(options.severities, ignored)

    def _keep(self, finding) -> bool:
        if finding.severity.upper() not in self.severities:
            return False
        return not (_finding_ids(finding) & self.ignored)

    def _filter_result(self, result: Result) -> Result:
        return result.model_copy(
            update={
                'vulnerabilities': [v for v in result.vulnerabilities if self._keep(v)],
                # Passed checks carry no finding
                'misconfigurations': [
                    m for m in result.misconfigurations
                    if m.status.upper() == 'FAIL' and self._keep(m)
                ],
                'secrets': [s for s in result.secrets if self._keep(s)],
            },
        )

    def apply(self, result: ScanResult) -> ScanResult:
        filtered = result.model_copy(
            update={'results': [self._filter_result(r) for r in result.results]},
        )
        logger.debug(
            'Filtered scan result',
            artifact=result.artifact_name,
            before=sum(len(r.findings()) for r in result.results),
            after=sum(len(r.findings()) for r in filtered.results),
        )
        return filtered
