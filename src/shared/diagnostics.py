"""
Diagnostic utilities.

This module reports process and system resources around long operations.
"""

import logging
import os
import threading
from typing import Any

import psutil

logger = logging.getLogger(__name__)


def get_memory_info() -> dict[str, Any]:
    """Get memory usage of the current process and the system."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / 1024 / 1024, 2),
            'process_vms_mb': round(memory_info.vms / 1024 / 1024, 2),
            'system_total_mb': round(system_memory.total / 1024 / 1024, 2),
            'system_available_mb': round(
                system_memory.available / 1024 / 1024,
                2,
            ),
            'system_used_percent': system_memory.percent,
            'process_memory_percent': round(process.memory_percent(), 2),
        }
    except (psutil.Error, OSError) as e:
        return {'error': f'Failed to get memory info: {e}'}


def get_thread_info() -> dict[str, Any]:
    """Get information about active threads."""
    info: dict[str, Any] = {
        'active_count': threading.active_count(),
        'thread_names': [t.name for t in threading.enumerate()],
        'main_thread_alive': threading.main_thread().is_alive(),
    }
    try:
        info['system_threads'] = psutil.Process().num_threads()
    except (psutil.Error, OSError) as e:
        logger.debug('Failed to get system thread count: %s', e)
    return info


def get_system_load() -> dict[str, Any]:
    """Get system load and CPU information."""
    try:
        info: dict[str, Any] = {
            'cpu_percent': psutil.cpu_percent(interval=None),
            'cpu_count': psutil.cpu_count(),
        }
    except (psutil.Error, OSError) as e:
        return {'error': f'Failed to get system load: {e}'}
    if hasattr(os, 'getloadavg'):
        load_avg = os.getloadavg()
        info['load_avg_1min'] = load_avg[0]
        info['load_avg_5min'] = load_avg[1]
        info['load_avg_15min'] = load_avg[2]
    return info


def log_comprehensive_diagnostics(
    operation: str = 'general',
    level: int = logging.INFO,
) -> None:
    """Log memory, thread and load information in one block."""
    logger.log(level, '=== DIAGNOSTIC INFO: %s ===', operation.upper())

    memory_info = get_memory_info()
    logger.log(
        level,
        'Memory - RSS: %sMB, VMS: %sMB, System Available: %sMB (%s%% used)',
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('process_vms_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
        memory_info.get('system_used_percent', 'N/A'),
    )

    thread_info = get_thread_info()
    logger.log(
        level,
        'Threads - Active: %s, System: %s, Main alive: %s',
        thread_info.get('active_count', 'N/A'),
        thread_info.get('system_threads', 'N/A'),
        thread_info.get('main_thread_alive', 'N/A'),
    )
    thread_names = thread_info.get('thread_names')
    if thread_names:
        logger.log(level, 'Active threads: %s', ', '.join(thread_names))

    load_info = get_system_load()
    logger.log(
        level,
        'System - CPU: %s%%, Load avg: %s',
        load_info.get('cpu_percent', 'N/A'),
        load_info.get('load_avg_1min', 'N/A'),
    )

    logger.log(level, '=== END DIAGNOSTIC INFO: %s ===', operation.upper())


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def log_thread_status(context: str = '') -> None:
    """Quick thread status logging."""
    thread_info = get_thread_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Thread status%s: Active=%s, System=%s',
        context_label,
        thread_info.get('active_count', 'N/A'),
        thread_info.get('system_threads', 'N/A'),
    )
