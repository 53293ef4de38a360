"""Profiling fixtures: collection switched on, no runs left over."""
import pytest

from ads import logging as ads_logging
from ads import profiling


@pytest.fixture
def profiler():
    """Profiling enabled with an empty run buffer; restored afterwards."""
    was_enabled = profiling.is_enabled()
    profiling.enable()
    profiling.clear_run_buffer()
    yield profiling
    while profiling.current_run() is not None:
        profiling.end_run()
    if not was_enabled:
        profiling.disable()
    profiling.clear_run_buffer()
    ads_logging.close_all_sinks()
