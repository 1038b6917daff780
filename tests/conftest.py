import pytest

from kubesbom.models.artifact import Artifact

KUBE_APISERVER_DIGEST = '18e61c783b41758dd391ab901366ec3546b26fae00eef7e223d1f94da808e02f'


@pytest.fixture
def pod_artifact():
    return Artifact(
        kind='PodInfo',
        namespace='kube-system',
        name='kube-apiserver-kind-control-plane',
        raw_resource={
            'Namespace': 'kube-system',
            'Name': 'kube-apiserver-kind-control-plane',
            'Properties': {'control_plane_components': 'kube-apiserver'},
            'Containers': [
                {
                    'Registry': 'k8s.gcr.io',
                    'Repository': 'kube-apiserver',
                    'Version': 'v1.21.1',
                    'Digest': KUBE_APISERVER_DIGEST,
                },
            ],
        },
    )


@pytest.fixture
def node_artifact():
    return Artifact(
        kind='NodeInfo',
        name='node-1',
        raw_resource={
            'NodeName': 'node-1',
            'OsImage': 'Ubuntu 21.04',
            'ContainerRuntimeVersion': 'containerd://1.5.2',
            'KubeletVersion': 'v1.21.1',
            'Properties': {
                'architecture': 'arm64',
                'host_name': 'node-1',
                'node_role': 'master',
            },
        },
    )
