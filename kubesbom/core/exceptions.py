"""Exception hierarchy for kubesbom.

Everything raised on purpose derives from KubeSBOMError so the CLI boundary
can report it without catching unrelated failures.
"""


class KubeSBOMError(Exception):
    """Base exception for all kubesbom errors."""


class ArtifactDecodeError(KubeSBOMError):
    """Raised when an artifact payload cannot be decoded into a component."""


class UnsupportedKindError(ArtifactDecodeError):
    """Raised for artifact kinds the adapter does not know how to convert."""

    def __init__(self, kind: str):
        super().__init__(f"resource kind {kind} is not supported")
        self.kind = kind


class ScanError(KubeSBOMError):
    """Raised by a scanner for a single image or config.

    The orchestrator records it on the affected resource and keeps going.
    """


class FilterError(KubeSBOMError):
    """Raised when result filtering fails. Aborts the whole batch."""


class PipelineError(KubeSBOMError):
    """Raised when a worker fails in a way that aborts the batch."""


class ScanCancelledError(KubeSBOMError):
    """Raised when the batch was cancelled before all artifacts ran."""


class TrivyNotFoundError(KubeSBOMError):
    """Raised when the trivy binary is not available."""


class EncodeError(KubeSBOMError):
    """Raised when a component cannot be expressed in the CycloneDX document."""
