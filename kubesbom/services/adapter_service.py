"""Turn collected cluster artifacts into a component tree."""
import re

from packageurl import PackageURL
from pydantic import ValidationError

from kubesbom.core.exceptions import ArtifactDecodeError
from kubesbom.core.exceptions import UnsupportedKindError
from kubesbom.core.logging import get_logger
from kubesbom.models import digest
from kubesbom.models.artifact import Artifact
from kubesbom.models.artifact import ContainerImage
from kubesbom.models.artifact import NODE_INFO
from kubesbom.models.artifact import NodeInfo
from kubesbom.models.artifact import POD_INFO
from kubesbom.models.artifact import PodInfo
from kubesbom.models.component import Component
from kubesbom.models.component import ComponentType

logger = get_logger('adapter_service')

GOLANG = 'golang'
OCI = 'oci'
KUBELET = 'k8s.io/kubelet'
NODE_CORE_COMPONENTS = 'node-core-components'

CLASS_OS_PKG = 'os-pkgs'
CLASS_LANG_PKG = 'lang-pkgs'

PROPERTY_PKG_ID = 'PkgID'
PROPERTY_PKG_TYPE = 'PkgType'
PROPERTY_CLASS = 'Class'
PROPERTY_TYPE = 'Type'

RUNTIMES = {
    'cri-o': 'github.com/cri-o/cri-o',
    'containerd': 'github.com/containerd/containerd',
    'cri-dockerd': 'github.com/Mirantis/cri-dockerd',
}

# Loose version grammar: numeric release, optional pre-release and build metadata
_VERSION_RE = re.compile(
    r'^v?[0-9]+(\.[0-9]+)*'
    r'(-?[0-9A-Za-z~-]+(\.[0-9A-Za-z~-]+)*)?'
    r'(\+[0-9A-Za-z~-]+(\.[0-9A-Za-z~-]+)*)?$',
)


def is_version(value: str) -> bool:
    return _VERSION_RE.match(value) is not None


def sanitized_version(version: str) -> str:
    return version.removeprefix('v')


def os_name_version(name: str) -> tuple[str, str]:
    """
    Split an OS image string such as "Ubuntu 21.04 LTS" into ("ubuntu", "21.04").

    The first token that looks like a version wins; everything before it is
    the name. Without any version token the whole string is the name.
    """
    words: list[str] = []
    version = ''
    for part in name.split(' '):
        if is_version(part):
            version = part
            break
        words.append(part)
    return ' '.join(words).strip().lower(), version


def runtime_name_version(name: str) -> tuple[str, str]:
    """Split "containerd://1.5.2" into the runtime module path and version."""
    parts = name.split('://')
    if len(parts) != 2:
        return '', ''
    runtime, version = parts
    return RUNTIMES.get(runtime, runtime), version


def _golang_purl(name: str, version: str) -> PackageURL:
    return PackageURL(type=GOLANG, namespace=None, name=name, version=version)


def _oci_purl(repository: str, qualified_digest: str, arch: str = '') -> PackageURL:
    qualifiers = {'repository_url': repository}
    if arch:
        qualifiers['arch'] = arch
    return PackageURL(
        type=OCI,
        name=repository.rsplit('/', 1)[-1].lower(),
        version=qualified_digest,
        qualifiers=qualifiers,
    )


def container_component(container: ContainerImage) -> Component:
    name = f"{container.registry}/{container.repository}"
    container_digest = digest.qualify(container.digest)
    version = sanitized_version(container.version)
    try:
        package_url = _oci_purl(name, container_digest, container.arch)
    except ValueError as e:
        raise ArtifactDecodeError(f"failed to create PURL: {e}") from e

    return Component(
        type=ComponentType.CONTAINER,
        name=name,
        version=container_digest,
        package_url=package_url,
        hashes=[container_digest],
        properties={
            PROPERTY_PKG_ID: f"{name}:{version}",
            PROPERTY_PKG_TYPE: OCI,
        },
    )


def pod_component(pod: PodInfo) -> Component:
    return Component(
        type=ComponentType.APPLICATION,
        name=pod.name,
        properties=dict(pod.properties),
        components=[container_component(c) for c in pod.containers],
    )


def _library(name: str, version: str) -> Component:
    # A runtime string without "://" leaves no name to build a PURL from
    return Component(
        type=ComponentType.LIBRARY,
        name=name,
        version=version,
        properties={PROPERTY_PKG_TYPE: GOLANG},
        package_url=_golang_purl(name, version) if name else None,
    )


def node_component(node: NodeInfo) -> Component:
    os_name, os_version = os_name_version(node.os_image)
    runtime_name, runtime_version = runtime_name_version(
        node.container_runtime_version,
    )
    kubelet_version = sanitized_version(node.kubelet_version)

    return Component(
        type=ComponentType.CONTAINER,
        name=node.node_name,
        properties=dict(node.properties),
        components=[
            Component(
                type=ComponentType.OPERATING_SYSTEM,
                name=os_name,
                version=os_version,
                properties={
                    PROPERTY_CLASS: CLASS_OS_PKG,
                    PROPERTY_TYPE: os_name,
                },
            ),
            Component(
                type=ComponentType.APPLICATION,
                name=NODE_CORE_COMPONENTS,
                properties={
                    PROPERTY_CLASS: CLASS_LANG_PKG,
                    PROPERTY_TYPE: GOLANG,
                },
                components=[
                    _library(KUBELET, kubelet_version),
                    _library(runtime_name, runtime_version),
                ],
            ),
        ],
    )


def artifact_component(artifact: Artifact) -> Component:
    """Decode one artifact into its component subtree."""
    try:
        if artifact.kind == POD_INFO:
            return pod_component(PodInfo.model_validate(artifact.raw_resource))
        if artifact.kind == NODE_INFO:
            return node_component(NodeInfo.model_validate(artifact.raw_resource))
    except ValidationError as e:
        raise ArtifactDecodeError(
            f"failed to decode {artifact.kind} {artifact.name}: {e}",
        ) from e
    raise UnsupportedKindError(artifact.kind)


def cluster_info_to_component(artifacts: list[Artifact], cluster_name: str) -> Component:
    """
    Build the cluster inventory tree.

    Every artifact must decode; a single failure aborts the whole tree.
    """
    children = [artifact_component(artifact) for artifact in artifacts]
    logger.debug(
        'Built cluster component tree',
        cluster=cluster_name, children=len(children),
    )
    return Component(
        type=ComponentType.CONTAINER,
        name=cluster_name,
        components=children,
    )
