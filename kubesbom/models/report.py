from dataclasses import dataclass
from dataclasses import field

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from kubesbom.models.artifact import Artifact
from kubesbom.models.component import Component


class Vulnerability(BaseModel):
    vulnerability_id: str = Field(alias='VulnerabilityID')
    pkg_name: str = Field(alias='PkgName', default='')
    installed_version: str = Field(alias='InstalledVersion', default='')
    fixed_version: str = Field(alias='FixedVersion', default='')
    severity: str = Field(alias='Severity', default='UNKNOWN')
    title: str = Field(alias='Title', default='')

    model_config = ConfigDict(populate_by_name=True, extra='allow')


class Misconfiguration(BaseModel):
    id: str = Field(alias='ID')
    avd_id: str = Field(alias='AVDID', default='')
    title: str = Field(alias='Title', default='')
    severity: str = Field(alias='Severity', default='UNKNOWN')
    status: str = Field(alias='Status', default='FAIL')

    model_config = ConfigDict(populate_by_name=True, extra='allow')


class Secret(BaseModel):
    rule_id: str = Field(alias='RuleID')
    category: str = Field(alias='Category', default='')
    severity: str = Field(alias='Severity', default='UNKNOWN')
    title: str = Field(alias='Title', default='')

    model_config = ConfigDict(populate_by_name=True, extra='allow')


class Result(BaseModel):
    """Findings for one target (an OS, a lock file, a config file...)."""
    target: str = Field(alias='Target')
    result_class: str = Field(alias='Class', default='')
    type: str = Field(alias='Type', default='')
    vulnerabilities: list[Vulnerability] = Field(
        alias='Vulnerabilities', default_factory=list,
    )
    misconfigurations: list[Misconfiguration] = Field(
        alias='Misconfigurations', default_factory=list,
    )
    secrets: list[Secret] = Field(alias='Secrets', default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def findings(self) -> list[Vulnerability | Misconfiguration | Secret]:
        return [*self.vulnerabilities, *self.misconfigurations, *self.secrets]


class ScanResult(BaseModel):
    """Report produced by one image or filesystem scan."""
    artifact_name: str = Field(alias='ArtifactName', default='')
    artifact_type: str = Field(alias='ArtifactType', default='')
    results: list[Result] = Field(alias='Results', default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class Resource(BaseModel):
    """Outcome of one scan of one artifact: either results or an error."""
    namespace: str = Field(alias='Namespace', default='')
    kind: str = Field(alias='Kind')
    name: str = Field(alias='Name')
    results: list[Result] = Field(alias='Results', default_factory=list)
    error: str = Field(alias='Error', default='')

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def create(
        cls,
        artifact: Artifact,
        result: ScanResult | None = None,
        error: Exception | None = None,
    ) -> 'Resource':
        return cls(
            namespace=artifact.namespace,
            kind=artifact.kind,
            name=artifact.name,
            results=result.results if result else [],
            error=str(error) if error else '',
        )

    @property
    def failed(self) -> bool:
        return bool(self.error)

    def severity_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for result in self.results:
            for finding in result.findings():
                counts[finding.severity] = counts.get(finding.severity, 0) + 1
        return counts


@dataclass
class Report:
    cluster_name: str
    resources: list[Resource] = field(default_factory=list)
    root_component: Component | None = None
    schema_version: int = 0

    def to_dict(self) -> dict:
        return {
            'SchemaVersion': self.schema_version,
            'ClusterName': self.cluster_name,
            'Resources': [
                resource.model_dump(mode='json', by_alias=True)
                for resource in self.resources
            ],
        }
