import threading
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from kubesbom.core.exceptions import FilterError
from kubesbom.core.exceptions import PipelineError
from kubesbom.core.exceptions import ScanError
from kubesbom.core.logging import ScanLogger
from kubesbom.core.parallel import Pipeline
from kubesbom.core.stats import BaseStats
from kubesbom.core.storage import remove_file
from kubesbom.core.storage import write_raw_resource
from kubesbom.models.artifact import Artifact
from kubesbom.models.options import ReportFormat
from kubesbom.models.options import ScanOptions
from kubesbom.models.report import Report
from kubesbom.models.report import Resource
from kubesbom.models.report import ScanResult
from kubesbom.services.adapter_service import cluster_info_to_component
from kubesbom.services.trivy_service import Runner


@dataclass
class ScanStats(BaseStats):
    images_scanned: int = 0
    images_failed: int = 0
    configs_scanned: int = 0
    configs_failed: int = 0

    def inc_images_scanned(self):
        with self._lock:
            self.images_scanned += 1

    def inc_images_failed(self):
        with self._lock:
            self.images_failed += 1
        self.inc_failed()

    def inc_configs_scanned(self):
        with self._lock:
            self.configs_scanned += 1

    def inc_configs_failed(self):
        with self._lock:
            self.configs_failed += 1
        self.inc_failed()


@dataclass
class ArtifactResult:
    """Everything one worker produced for one artifact."""
    vulns: list[Resource] = field(default_factory=list)
    misconfig: Resource | None = None


class Scanner:
    """
    Scan every artifact of a cluster, or build its component tree.

    Artifacts are processed on a bounded worker pool. A failing image or
    config scan is recorded on its resource and the batch carries on; a
    failing filter or a failure to stage the config file aborts the batch.
    """

    def __init__(
        self,
        cluster: str,
        runner: Runner | None,
        options: ScanOptions,
        log: ScanLogger | None = None,
        write_resource: Callable[[Artifact], Path] = write_raw_resource,
        remove_resource: Callable[[Path], None] = remove_file,
    ):
        self.cluster = cluster
        self.runner = runner
        self.options = options
        self.log = log or ScanLogger('scanner', debug=options.debug)
        self.write_resource = write_resource
        self.remove_resource = remove_resource
        self.stats = ScanStats()

    def scan(self, artifacts: list[Artifact], cancel: threading.Event | None = None) -> Report:
        self.stats = ScanStats(total=len(artifacts))

        # Mutes every ScanLogger of this invocation, worker threads included
        with self.log.mute():
            if self.options.format == ReportFormat.CYCLONEDX:
                root = cluster_info_to_component(artifacts, self.cluster)
                return Report(cluster_name=self.cluster, root_component=root)

            resources: list[Resource] = []

            def on_result(result: ArtifactResult) -> None:
                resources.extend(result.vulns)
                if result.misconfig is not None:
                    resources.append(result.misconfig)

            pipeline = Pipeline(
                workers=self.options.workers,
                progress=not self.options.quiet,
                items=artifacts,
                on_item=self._scan_artifact,
                on_result=on_result,
                description=f"Scanning {self.cluster}...",
            )
            try:
                pipeline.run(cancel)
            finally:
                self.stats.inc_skipped(pipeline.skipped)

        self.log.info(
            'Scan Complete',
            cluster=self.cluster,
            artifacts=self.stats.total,
            skipped=self.stats.skipped,
            resources=len(resources),
            images_scanned=self.stats.images_scanned,
            images_failed=self.stats.images_failed,
            configs_scanned=self.stats.configs_scanned,
            configs_failed=self.stats.configs_failed,
            elapsed=f"{self.stats.elapsed_time:.2f}s",
        )
        return Report(cluster_name=self.cluster, resources=resources)

    def _scan_artifact(self, artifact: Artifact) -> ArtifactResult:
        result = ArtifactResult()
        if self.options.scan_vulns:
            try:
                result.vulns = self._scan_vulns(artifact)
            except FilterError as e:
                raise PipelineError(f"scanning vulnerabilities error: {e}") from e
        if self.options.scan_misconfigs:
            try:
                result.misconfig = self._scan_misconfigs(artifact)
            except FilterError as e:
                raise PipelineError(f"scanning misconfigurations error: {e}") from e
        return result

    def _scan_vulns(self, artifact: Artifact) -> list[Resource]:
        resources = []
        for image in artifact.images:
            try:
                image_report = self.runner.scan_image(image, self.options)
            except ScanError as e:
                self.log.warning('Failed to scan image', image=image, error=str(e))
                self.stats.inc_images_failed()
                resources.append(Resource.create(artifact, error=e))
                continue

            self.stats.inc_images_scanned()
            resources.append(self._filter(image_report, artifact))
        return resources

    def _scan_misconfigs(self, artifact: Artifact) -> Resource:
        try:
            config_file = self.write_resource(artifact)
        except OSError as e:
            raise PipelineError(
                f"scan error: failed to stage {artifact.full_name}: {e}",
            ) from e

        try:
            config_report = self.runner.scan_filesystem(config_file, self.options)
        except ScanError as e:
            self.log.debug(
                'Failed to scan config', artifact=artifact.full_name, error=str(e),
            )
            self.stats.inc_configs_failed()
            return Resource.create(artifact, error=e)
        finally:
            self.remove_resource(config_file)

        self.stats.inc_configs_scanned()
        return self._filter(config_report, artifact)

    def _filter(self, result: ScanResult, artifact: Artifact) -> Resource:
        return Resource.create(artifact, self.runner.filter(self.options, result))
