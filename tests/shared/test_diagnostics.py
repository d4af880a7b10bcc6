"""Tests for shared.diagnostics helpers."""

import logging
from types import SimpleNamespace

import psutil

import shared.diagnostics as diagnostics


def test_get_memory_info_direct():
    info = diagnostics.get_memory_info()
    assert 'process_rss_mb' in info


def test_get_thread_info_direct():
    info = diagnostics.get_thread_info()
    assert info['active_count'] >= 1
    assert info['main_thread_alive'] is True


def test_get_system_load_direct():
    info = diagnostics.get_system_load()
    assert 'cpu_percent' in info


def test_log_memory_usage_direct(caplog):
    with caplog.at_level(logging.INFO):
        diagnostics.log_memory_usage('test context')
    assert 'Memory usage (test context)' in caplog.text


def test_log_thread_status_direct(caplog):
    with caplog.at_level(logging.INFO):
        diagnostics.log_thread_status('test context')
    assert 'Thread status' in caplog.text


def test_log_comprehensive_diagnostics_direct(caplog):
    with caplog.at_level(logging.INFO):
        diagnostics.log_comprehensive_diagnostics('test op')
    assert 'DIAGNOSTIC INFO: TEST OP' in caplog.text
    assert 'END DIAGNOSTIC INFO: TEST OP' in caplog.text


def test_get_memory_info_with_psutil(monkeypatch):
    """get_memory_info should convert psutil numbers to megabytes."""

    class DummyProcess:
        pid = 123

        def memory_info(self):
            return SimpleNamespace(rss=1024 * 1024, vms=2 * 1024 * 1024)

        def memory_percent(self):
            return 12.5

    monkeypatch.setattr(diagnostics.psutil, 'Process', lambda: DummyProcess())
    monkeypatch.setattr(
        diagnostics.psutil,
        'virtual_memory',
        lambda: SimpleNamespace(
            total=10 * 1024 * 1024,
            available=4 * 1024 * 1024,
            percent=60,
        ),
    )

    info = diagnostics.get_memory_info()

    assert info['process_rss_mb'] == 1.0
    assert info['process_vms_mb'] == 2.0
    assert info['system_available_mb'] == 4.0
    assert info['process_memory_percent'] == 12.5


def test_get_memory_info_error(monkeypatch):
    """psutil failures are reported, not raised."""

    def boom():
        raise psutil.AccessDenied()

    monkeypatch.setattr(diagnostics.psutil, 'Process', boom)
    info = diagnostics.get_memory_info()
    assert 'error' in info
