"""Configuration management for kubesbom."""
import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path


@dataclass
class PathConfig:
    """File path configuration."""
    cache_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv('KUBESBOM_CACHE_DIR', '.cache'),
        ),
    )

    @property
    def trivy_cache_dir(self) -> Path:
        """Cache directory handed to the trivy binary (vulnerability DB)."""
        return self.cache_dir / 'trivy'

    @property
    def temp_dir(self) -> Path | None:
        """Where raw resources are materialized; None means the system default."""
        value = os.getenv('KUBESBOM_TEMP_DIR')
        return Path(value) if value else None


@dataclass
class TrivyConfig:
    """Settings of the trivy binary driven by the default runner."""
    binary: str = field(
        default_factory=lambda: os.getenv('KUBESBOM_TRIVY_PATH', 'trivy'),
    )
    timeout: int = field(
        default_factory=lambda: int(os.getenv('KUBESBOM_TIMEOUT', '600')),
    )


@dataclass
class ScanConfig:
    """Defaults for the scan orchestrator."""
    parallel: int = field(
        default_factory=lambda: int(os.getenv('KUBESBOM_PARALLEL', '5')),
    )
    severities: tuple[str, ...] = (
        'UNKNOWN', 'LOW', 'MEDIUM', 'HIGH', 'CRITICAL',
    )


@dataclass
class KubeSBOMConfig:
    paths: PathConfig = field(default_factory=PathConfig)
    trivy: TrivyConfig = field(default_factory=TrivyConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)

    @classmethod
    def load(cls) -> 'KubeSBOMConfig':
        return cls()


_config: KubeSBOMConfig | None = None


def get_config() -> KubeSBOMConfig:
    global _config
    if _config is None:
        _config = KubeSBOMConfig.load()
    return _config
