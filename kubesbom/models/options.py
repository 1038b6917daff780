from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path


class ScannerType(str, Enum):
    VULN = 'vuln'
    SECRET = 'secret'
    MISCONFIG = 'misconfig'
    RBAC = 'rbac'

    def __str__(self) -> str:
        return self.value


class ReportFormat(str, Enum):
    TABLE = 'table'
    JSON = 'json'
    CYCLONEDX = 'cyclonedx'

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ScanOptions:
    """Knobs for one scan invocation, shared read-only by all workers."""
    scanners: frozenset[ScannerType] = frozenset(
        {ScannerType.VULN, ScannerType.MISCONFIG},
    )
    format: ReportFormat = ReportFormat.TABLE
    parallel: int | None = 5
    severities: tuple[str, ...] = (
        'UNKNOWN', 'LOW', 'MEDIUM', 'HIGH', 'CRITICAL',
    )
    ignore_file: Path | None = None
    debug: bool = False
    quiet: bool = False
    extra_args: tuple[str, ...] = field(default_factory=tuple)

    def any_enabled(self, *scanners: ScannerType) -> bool:
        return any(scanner in self.scanners for scanner in scanners)

    @property
    def scan_vulns(self) -> bool:
        return self.any_enabled(ScannerType.VULN, ScannerType.SECRET)

    @property
    def scan_misconfigs(self) -> bool:
        return self.any_enabled(ScannerType.MISCONFIG, ScannerType.RBAC)

    @property
    def workers(self) -> int:
        return self.parallel if self.parallel and self.parallel > 0 else 1
