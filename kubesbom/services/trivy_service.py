import json
import subprocess
import time
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from kubesbom.core.config import get_config
from kubesbom.core.exceptions import FilterError
from kubesbom.core.exceptions import ScanError
from kubesbom.core.logging import get_logger
from kubesbom.core.trivy import check_trivy_installed
from kubesbom.models.options import ScannerType
from kubesbom.models.options import ScanOptions
from kubesbom.models.report import ScanResult
from kubesbom.services.filter_service import ResultFilter

logger = get_logger('trivy_service')


class Runner(Protocol):
    """Scanning engine driven by the orchestrator."""

    def scan_image(self, image: str, options: ScanOptions) -> ScanResult:
        """Scan one image. Raises ScanError."""

    def scan_filesystem(self, path: Path, options: ScanOptions) -> ScanResult:
        """Scan a config file or directory. Raises ScanError."""

    def filter(self, options: ScanOptions, result: ScanResult) -> ScanResult:
        """Drop unwanted findings. Raises FilterError."""


class TrivyRunner:
    """Runner backed by the trivy command line tool."""

    def __init__(self, binary: str | None = None, timeout: int | None = None):
        config = get_config()
        self.binary = check_trivy_installed(binary or config.trivy.binary)
        self.timeout = timeout or config.trivy.timeout
        self.cache_dir = config.paths.trivy_cache_dir

    def _run(self, command: list[str], target: str) -> ScanResult:
        start_time = time.time()
        try:
            process = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise ScanError(
                f"trivy exited with {e.returncode} for {target}: {e.stderr.strip()}",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ScanError(f"trivy timed out after {self.timeout}s for {target}") from e
        except OSError as e:
            raise ScanError(f"failed to run trivy for {target}: {e}") from e

        elapsed = time.time() - start_time
        logger.debug(
            'TRIVY Command',
            command=' '.join(command),
            returncode=process.returncode,
            size=len(process.stdout),
            elapsed=f"{elapsed:.3f}s",
        )

        try:
            return ScanResult.model_validate(json.loads(process.stdout or '{}'))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ScanError(f"invalid trivy report for {target}: {e}") from e

    def _base_command(self, subcommand: str) -> list[str]:
        return [
            self.binary, subcommand,
            '--format', 'json',
            '--quiet',
            '--cache-dir', str(self.cache_dir),
        ]

    def scan_image(self, image: str, options: ScanOptions) -> ScanResult:
        scanners = sorted(
            str(s) for s in options.scanners
            if s in (ScannerType.VULN, ScannerType.SECRET)
        )
        command = self._base_command('image') + [
            '--scanners', ','.join(scanners),
            *options.extra_args,
            image,
        ]
        return self._run(command, image)

    def scan_filesystem(self, path: Path, options: ScanOptions) -> ScanResult:
        command = self._base_command('config') + [*options.extra_args, str(path)]
        return self._run(command, str(path))

    def filter(self, options: ScanOptions, result: ScanResult) -> ScanResult:
        try:
            return ResultFilter.from_options(options).apply(result)
        except FilterError:
            raise
        except Exception as e:
            raise FilterError(f"failed to filter {result.artifact_name}: {e}") from e
