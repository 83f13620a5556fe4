"""
Pytest configuration and shared fixtures for the traceperf test suite.

This module provides common fixtures, test utilities, and configuration
for all test modules in the traceperf project.
"""

import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "e2e: mark test as an end-to-end test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


TARGET_PID = 4242


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def target_pid():
    return TARGET_PID


@pytest.fixture
def engine_config():
    """Engine configuration rooted at the test target process."""
    from traceperf.models.config import EngineConfig

    return EngineConfig(target_pid=TARGET_PID)


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample configuration document for testing."""
    return {
        "engine": {
            "target_pid": TARGET_PID,
            "counter_sources": [0, 1],
            "default_counter_interval": 1000,
            "seed_target_process": False,
        },
        "run": {
            "run_id": "test-run",
            "output_dir": "results",
            "min_iterations": 2,
            "max_iterations": 10,
        },
        "metrics": {
            "enabled": [],
            "counting": [{"name": "GCCollections", "marker": "GC"}],
            "counter": [
                {"name": "CoreInstructions", "counter_source": 0, "module": "coreclr.dll"},
            ],
        },
        "storage": {
            "format": "parquet",
            "compression": "snappy",
            "generate_legacy_formats": True,
        },
        "logging": {"level": "INFO"},
    }


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a temporary config.toml."""
    import toml

    config_data = dict(sample_config_data)
    config_data["run"] = dict(sample_config_data["run"], output_dir=str(temp_dir / "results"))

    path = temp_dir / "config.toml"
    with open(path, "w") as f:
        toml.dump(config_data, f)
    return path


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield  # Run the test

    from traceperf.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(original_config_path)


# ============================================================================
# Test Utilities
# ============================================================================


class TraceBuilder:
    """
    Builds an ordered list of trace events with a monotonically advancing
    clock. Every helper returns the builder so calls can be chained.
    """

    def __init__(self, target_pid: int = TARGET_PID, start: float = 0.0, step: float = 1.0):
        self.target_pid = target_pid
        self.now = start
        self.step = step
        self.events: List[Any] = []

    def _add(self, kind: str, timestamp: Optional[float] = None, **fields: Any) -> "TraceBuilder":
        from traceperf.models.events import TraceEvent

        if timestamp is None:
            self.now += self.step
            timestamp = self.now
        else:
            self.now = max(self.now, timestamp)
        self.events.append(TraceEvent.create(kind, timestamp, **fields))
        return self

    def process_start(self, pid: Optional[int] = None, parent: Optional[int] = None, name: str = "bench.exe", **kw):
        return self._add(
            "ProcessStart",
            process_id=self.target_pid if pid is None else pid,
            parent_process_id=parent,
            process_name=name,
            **kw,
        )

    def process_stop(self, pid: Optional[int] = None, **kw):
        return self._add("ProcessStop", process_id=self.target_pid if pid is None else pid, **kw)

    def module_load(self, file_name: str, base: int, size: int, pid: Optional[int] = None, checksum: int = 0, **kw):
        return self._add(
            "ModuleLoad",
            process_id=self.target_pid if pid is None else pid,
            file_name=file_name,
            image_base=base,
            image_size=size,
            checksum=checksum,
            **kw,
        )

    def module_unload(self, file_name: str, base: int, size: int, pid: Optional[int] = None, checksum: int = 0, **kw):
        return self._add(
            "ModuleUnload",
            process_id=self.target_pid if pid is None else pid,
            file_name=file_name,
            image_base=base,
            image_size=size,
            checksum=checksum,
            **kw,
        )

    def interval(self, source: int, interval: int, **kw):
        return self._add("CounterIntervalChanged", counter_source=source, interval=interval, **kw)

    def sample(self, address: int, source: int = 0, pid: Optional[int] = None, **kw):
        return self._add(
            "CounterSample",
            process_id=self.target_pid if pid is None else pid,
            counter_source=source,
            instruction_pointer=address,
            **kw,
        )

    def iteration_start(self, test_name: str, iteration: int, **kw):
        return self._add("IterationStart", test_name=test_name, iteration=iteration, **kw)

    def iteration_stop(self, test_name: str, iteration: int, **kw):
        return self._add("IterationStop", test_name=test_name, iteration=iteration, **kw)

    def marker(self, name: str, **kw):
        return self._add("CustomMarker", marker=name, **kw)


@pytest.fixture
def trace_builder():
    """Provide a fresh TraceBuilder for the test target process."""
    return TraceBuilder()


@pytest.fixture
def make_trace_builder():
    """Factory for TraceBuilders with a custom target pid or clock."""
    return TraceBuilder


def feed_all(engine, events) -> None:
    for event in events:
        engine.feed(event)


@pytest.fixture
def feed():
    """Feed a list of events to an engine."""
    return feed_all
