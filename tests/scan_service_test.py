import json
import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from kubesbom.core.exceptions import FilterError
from kubesbom.core.exceptions import PipelineError
from kubesbom.core.exceptions import ScanCancelledError
from kubesbom.core.exceptions import ScanError
from kubesbom.core.logging import ScanLogger
from kubesbom.models.artifact import Artifact
from kubesbom.models.options import ReportFormat
from kubesbom.models.options import ScannerType
from kubesbom.models.options import ScanOptions
from kubesbom.models.report import Result
from kubesbom.models.report import ScanResult
from kubesbom.models.report import Vulnerability
from kubesbom.services.scan_service import Scanner
from kubesbom.services.trivy_service import TrivyRunner

VULN_ONLY = frozenset({ScannerType.VULN})
MISCONFIG_ONLY = frozenset({ScannerType.MISCONFIG})


def scan_result(target: str) -> ScanResult:
    return ScanResult(
        artifact_name=target,
        results=[
            Result(
                target=target,
                vulnerabilities=[
                    Vulnerability(vulnerability_id='CVE-2021-0001', severity='HIGH'),
                ],
            ),
        ],
    )


def deployment(name: str, images: list[str]) -> Artifact:
    return Artifact(
        kind='Deployment', namespace='default', name=name, images=images,
        raw_resource={'kind': 'Deployment', 'metadata': {'name': name}},
    )


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.scan_image.side_effect = lambda image, options: scan_result(image)
    runner.scan_filesystem.side_effect = lambda path, options: scan_result(str(path))
    runner.filter.side_effect = lambda options, result: result
    return runner


@pytest.fixture
def staged(tmp_path):
    written = []
    removed = []

    def write(artifact):
        path = tmp_path / f"{artifact.name}.yaml"
        path.write_text('kind: Deployment\n')
        written.append(path)
        return path

    def remove(path: Path):
        removed.append(path)
        path.unlink()

    return write, remove, written, removed


def make_scanner(runner, staged=None, **kwargs):
    options = ScanOptions(quiet=True, **kwargs)
    if staged is None:
        return Scanner('test-cluster', runner, options)
    write, remove, _, _ = staged
    return Scanner(
        'test-cluster', runner, options,
        write_resource=write, remove_resource=remove,
    )


def test_one_failing_image_is_isolated(runner):
    def scan_image(image, options):
        if image == 'bad:1.0':
            raise ScanError('manifest unknown')
        return scan_result(image)

    runner.scan_image.side_effect = scan_image
    artifacts = [
        deployment('a', ['good:1.0']),
        deployment('b', ['bad:1.0']),
        deployment('c', ['good:2.0']),
    ]
    scanner = make_scanner(runner, scanners=VULN_ONLY, parallel=3)

    report = scanner.scan(artifacts)

    assert len(report.resources) == 3
    failed = [r for r in report.resources if r.failed]
    assert len(failed) == 1
    assert failed[0].name == 'b'
    assert failed[0].error == 'manifest unknown'
    assert failed[0].results == []
    assert all(r.results for r in report.resources if not r.failed)
    assert scanner.stats.images_failed == 1
    assert scanner.stats.images_scanned == 2
    assert scanner.stats.failed == 1


def test_failed_image_is_not_filtered(runner):
    runner.scan_image.side_effect = ScanError('timeout')
    make_scanner(runner, scanners=VULN_ONLY).scan([deployment('a', ['x:1'])])
    runner.filter.assert_not_called()


def test_multiple_images_yield_multiple_resources(runner):
    report = make_scanner(runner, scanners=VULN_ONLY).scan(
        [deployment('a', ['nginx:1.25', 'busybox:1.36'])],
    )
    assert len(report.resources) == 2
    assert {r.results[0].target for r in report.resources} == {'nginx:1.25', 'busybox:1.36'}


def test_no_resources_lost_under_concurrency(runner):
    artifacts = [deployment(f"app-{i}", [f"img-{i}:1"]) for i in range(60)]
    report = make_scanner(runner, scanners=VULN_ONLY, parallel=8).scan(artifacts)
    names = [r.name for r in report.resources]
    assert sorted(names) == sorted(a.name for a in artifacts)


def test_misconfig_scan_removes_staged_file(runner, staged):
    _, _, written, removed = staged
    report = make_scanner(runner, staged, scanners=MISCONFIG_ONLY).scan(
        [deployment('a', [])],
    )
    assert len(report.resources) == 1
    assert written == removed
    assert not written[0].exists()
    runner.scan_filesystem.assert_called_once()


def test_misconfig_failure_is_isolated_and_cleaned_up(runner, staged):
    _, _, written, removed = staged
    runner.scan_filesystem.side_effect = ScanError('bad config')

    scanner = make_scanner(runner, staged, scanners=MISCONFIG_ONLY)
    report = scanner.scan([deployment('a', []), deployment('b', [])])

    assert len(report.resources) == 2
    assert all(r.error == 'bad config' for r in report.resources)
    assert sorted(written) == sorted(removed)
    assert scanner.stats.configs_failed == 2


def test_staging_failure_aborts(runner):
    def write(artifact):
        raise OSError('disk full')

    scanner = Scanner(
        'test-cluster', runner,
        ScanOptions(quiet=True, scanners=MISCONFIG_ONLY),
        write_resource=write,
    )
    with pytest.raises(PipelineError, match='disk full') as excinfo:
        scanner.scan([deployment('a', [])])
    assert str(excinfo.value).startswith('scan error: failed to stage default/Deployment/a')
    assert isinstance(excinfo.value.__cause__, OSError)


def test_vuln_scan_precedes_misconfig_scan(runner, staged):
    calls = []
    lock = threading.Lock()

    def scan_image(image, options):
        with lock:
            calls.append(('image', image.split(':')[0]))
        return scan_result(image)

    def scan_filesystem(path, options):
        with lock:
            calls.append(('config', path.stem))
        return scan_result(str(path))

    runner.scan_image.side_effect = scan_image
    runner.scan_filesystem.side_effect = scan_filesystem
    artifacts = [deployment(f"app{i}", [f"app{i}:1"]) for i in range(10)]

    report = make_scanner(
        runner, staged, scanners=VULN_ONLY | MISCONFIG_ONLY, parallel=4,
    ).scan(artifacts)

    assert len(report.resources) == 20
    for artifact in artifacts:
        assert calls.index(('image', artifact.name)) < calls.index(('config', artifact.name))


def test_filter_error_aborts_whole_batch(runner):
    runner.filter.side_effect = FilterError('bad ignore file')
    log = ScanLogger('test')
    scanner = Scanner(
        'test-cluster', runner,
        ScanOptions(quiet=True, scanners=VULN_ONLY, parallel=1), log=log,
    )

    with pytest.raises(PipelineError) as excinfo:
        scanner.scan([deployment(f"app{i}", ['img:1']) for i in range(20)])
    assert str(excinfo.value) == 'scanning vulnerabilities error: bad ignore file'
    assert isinstance(excinfo.value.__cause__, FilterError)

    assert runner.scan_image.call_count < 20
    assert not log.muted


def test_logging_is_muted_during_batch_and_restored(runner):
    log = ScanLogger('test')
    states = []

    def scan_image(image, options):
        states.append(log.muted)
        return scan_result(image)

    runner.scan_image.side_effect = scan_image
    Scanner(
        'test-cluster', runner, ScanOptions(quiet=True, scanners=VULN_ONLY), log=log,
    ).scan([deployment('a', ['img:1'])])

    assert states == [True]
    assert not log.muted


def test_disabled_scanners_do_nothing(runner):
    report = make_scanner(runner, scanners=frozenset()).scan([deployment('a', ['img:1'])])
    assert report.resources == []
    runner.scan_image.assert_not_called()
    runner.scan_filesystem.assert_not_called()


def test_secret_scanner_triggers_image_scan(runner):
    make_scanner(runner, scanners=frozenset({ScannerType.SECRET})).scan(
        [deployment('a', ['img:1'])],
    )
    runner.scan_image.assert_called_once()


def test_zero_parallel_runs_single_worker(runner):
    report = make_scanner(runner, scanners=VULN_ONLY, parallel=0).scan(
        [deployment('a', ['img:1']), deployment('b', ['img:2'])],
    )
    assert len(report.resources) == 2


def test_cancelled_batch_raises(runner):
    cancel = threading.Event()
    cancel.set()
    scanner = make_scanner(runner, scanners=VULN_ONLY)
    with pytest.raises(ScanCancelledError):
        scanner.scan([deployment('a', ['img:1']), deployment('b', ['img:2'])], cancel)
    runner.scan_image.assert_not_called()
    assert scanner.stats.skipped == 2


def test_cyclonedx_format_builds_tree_without_scanning(pod_artifact, node_artifact):
    log = ScanLogger('test')
    scanner = Scanner(
        'test-cluster', None, ScanOptions(format=ReportFormat.CYCLONEDX), log=log,
    )

    report = scanner.scan([pod_artifact, node_artifact])

    assert report.resources == []
    assert report.root_component.name == 'test-cluster'
    assert len(report.root_component.components) == 2
    assert not log.muted


TRIVY_REPORT = {
    'ArtifactName': 'app',
    'Results': [
        {
            'Target': 'app (alpine 3.19)',
            'Vulnerabilities': [
                {'VulnerabilityID': 'CVE-2024-0001', 'Severity': 'HIGH'},
                {'VulnerabilityID': 'CVE-2024-0002', 'Severity': 'LOW'},
            ],
        },
    ],
}


def fake_trivy(command, **kwargs):
    if command[-1] == 'broken:1':
        raise subprocess.CalledProcessError(1, command, stderr='manifest unknown')
    return MagicMock(stdout=json.dumps(TRIVY_REPORT), returncode=0)


def test_batch_emits_only_the_summary(tmp_path, monkeypatch):
    monkeypatch.setenv('KUBESBOM_TEMP_DIR', str(tmp_path))
    with patch('kubesbom.services.trivy_service.get_config') as mock_config, \
            patch('kubesbom.services.trivy_service.check_trivy_installed') as mock_check, \
            patch('kubesbom.services.trivy_service.subprocess.run') as mock_run:
        mock_config.return_value.trivy.binary = 'trivy'
        mock_config.return_value.trivy.timeout = 30
        mock_config.return_value.paths.trivy_cache_dir = tmp_path / 'trivy'
        mock_check.return_value = '/usr/local/bin/trivy'
        mock_run.side_effect = fake_trivy

        scanner = Scanner(
            'test-cluster', TrivyRunner(),
            ScanOptions(
                quiet=True, debug=True, parallel=3,
                scanners=VULN_ONLY | MISCONFIG_ONLY, severities=('HIGH',),
            ),
        )
        with capture_logs() as captured:
            report = scanner.scan([
                deployment('a', ['nginx:1.25']),
                deployment('b', ['broken:1']),
                deployment('c', ['redis:7']),
            ])

    assert [e['event'] for e in captured] == ['Scan Complete']
    assert captured[0]['images_failed'] == 1
    assert len(report.resources) == 6
    kept = [r for r in report.resources if not r.failed]
    assert all(
        [v.vulnerability_id for v in r.results[0].vulnerabilities] == ['CVE-2024-0001']
        for r in kept
    )
    assert list(tmp_path.glob('*.yaml')) == []
