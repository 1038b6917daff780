import threading

import pytest
from structlog.testing import capture_logs

from kubesbom.core.logging import get_logger
from kubesbom.core.logging import ScanLogger


def test_logs_when_not_muted():
    with capture_logs() as captured:
        log = ScanLogger('scanner')
        log.info('Scan Complete', resources=3)
    assert captured == [
        {'event': 'Scan Complete', 'resources': 3, 'log_level': 'info'},
    ]


def test_mute_silences_and_restores():
    with capture_logs() as captured:
        log = ScanLogger('scanner')
        with log.mute():
            assert log.muted
            log.warning('Failed to scan image', image='x:1')
        log.warning('after')
    assert [e['event'] for e in captured] == ['after']
    assert not log.muted


def test_mute_restores_after_error():
    log = ScanLogger('scanner')
    with pytest.raises(RuntimeError):
        with log.mute():
            raise RuntimeError('boom')
    assert not log.muted


def test_nested_mute_keeps_outer_state():
    log = ScanLogger('scanner')
    with log.mute():
        with log.mute():
            pass
        assert log.muted
    assert not log.muted


def test_mute_reaches_other_handles():
    first = ScanLogger('scanner')
    second = get_logger('trivy_service')
    with capture_logs() as captured:
        with first.mute():
            assert second.muted
            second.debug('TRIVY Command', command='trivy image x:1')
        second.debug('after')
    assert [e['event'] for e in captured] == ['after']


def test_mute_does_not_leak_into_other_threads():
    log = ScanLogger('scanner')
    seen = []
    with log.mute():
        # A fresh thread starts from an empty context
        worker = threading.Thread(target=lambda: seen.append(ScanLogger('other').muted))
        worker.start()
        worker.join()
    assert seen == [False]


def test_debug_only_when_enabled():
    with capture_logs() as captured:
        ScanLogger('scanner', debug=False).debug('hidden')
        ScanLogger('scanner').debug('shown')
    assert [e['event'] for e in captured] == ['shown']
