"""Shared utilities and helpers."""
from shared.diagnostics import (
    log_comprehensive_diagnostics,
    log_memory_usage,
    log_thread_status,
)
from shared.progress import ConsoleProgress, set_progress_callback

__all__ = [
    'ConsoleProgress',
    'log_comprehensive_diagnostics',
    'log_memory_usage',
    'log_thread_status',
    'set_progress_callback',
]
