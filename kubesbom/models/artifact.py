from typing import Any

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

POD_INFO = 'PodInfo'
NODE_INFO = 'NodeInfo'


class Artifact(BaseModel):
    """A scannable unit collected from the cluster."""
    kind: str = Field(validation_alias=AliasChoices('kind', 'Kind'))
    name: str = Field(validation_alias=AliasChoices('name', 'Name'))
    namespace: str = Field(
        default='', validation_alias=AliasChoices('namespace', 'Namespace'),
    )
    labels: dict[str, str] = Field(
        default_factory=dict, validation_alias=AliasChoices('labels', 'Labels'),
    )
    images: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices('images', 'Images'),
    )
    raw_resource: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('raw_resource', 'rawResource', 'RawResource'),
    )

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    @field_validator('labels', 'raw_resource', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return v if v is not None else {}

    @field_validator('images', mode='before')
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return v if v is not None else []

    @property
    def full_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.kind}/{self.name}"
        return f"{self.kind}/{self.name}"


class ContainerImage(BaseModel):
    """One container of a pod, as reported by the cluster collector."""
    id: str = Field(default='', validation_alias=AliasChoices('id', 'ID'))
    registry: str = Field(
        default='', validation_alias=AliasChoices('registry', 'Registry'),
    )
    repository: str = Field(validation_alias=AliasChoices('repository', 'Repository'))
    version: str = Field(
        default='', validation_alias=AliasChoices('version', 'Version'),
    )
    digest: str = Field(validation_alias=AliasChoices('digest', 'Digest'))
    arch: str = Field(default='', validation_alias=AliasChoices('arch', 'Arch'))

    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class PodInfo(BaseModel):
    namespace: str = Field(
        default='', validation_alias=AliasChoices('namespace', 'Namespace'),
    )
    name: str = Field(validation_alias=AliasChoices('name', 'Name'))
    properties: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('properties', 'Properties'),
    )
    containers: list[ContainerImage] = Field(
        default_factory=list,
        validation_alias=AliasChoices('containers', 'Containers'),
    )

    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class NodeInfo(BaseModel):
    node_name: str = Field(validation_alias=AliasChoices('node_name', 'NodeName'))
    kubelet_version: str = Field(
        default='', validation_alias=AliasChoices('kubelet_version', 'KubeletVersion'),
    )
    container_runtime_version: str = Field(
        default='',
        validation_alias=AliasChoices(
            'container_runtime_version', 'ContainerRuntimeVersion',
        ),
    )
    os_image: str = Field(
        default='', validation_alias=AliasChoices('os_image', 'OsImage'),
    )
    hostname: str = Field(
        default='', validation_alias=AliasChoices('hostname', 'Hostname'),
    )
    kernel_version: str = Field(
        default='', validation_alias=AliasChoices('kernel_version', 'KernelVersion'),
    )
    properties: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('properties', 'Properties'),
    )

    model_config = ConfigDict(extra='ignore', populate_by_name=True)
