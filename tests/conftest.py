"""
Global test configuration and fixtures
"""

import time

import pytest

from soong_sanitize import ModuleGraph, PolicyConfiguration, PropagationEngine

# Slow test thresholds (seconds)
SLOW_TEST_THRESHOLD = 5.0
WARNING_TEST_THRESHOLD = 2.0


@pytest.fixture(autouse=True)
def track_test_duration(request):
    """Warn about slow tests"""
    start_time = time.time()

    yield

    duration = time.time() - start_time
    test_name = request.node.nodeid

    if duration > SLOW_TEST_THRESHOLD:
        print(f"\nSLOW TEST ({duration:.2f}s): {test_name}")
    elif duration > WARNING_TEST_THRESHOLD:
        print(f"\nSlow ({duration:.2f}s): {test_name}")


@pytest.fixture
def make_graph():
    """Build a ModuleGraph from Blueprint-like dicts, runtime libraries included"""

    def _make(declarations, host=False, runtimes=True):
        graph = ModuleGraph.from_declarations(declarations, host=host)
        if runtimes:
            graph.add_runtime_libraries(host=host)
        return graph

    return _make


@pytest.fixture
def propagate(make_graph):
    """Run propagation over declarations with optional product variables"""

    def _run(declarations, variables=None, host=False, max_workers=1):
        config = PolicyConfiguration.from_dict(variables)
        return PropagationEngine(make_graph(declarations, host=host), config, max_workers=max_workers).run()

    return _run


# Pytest hooks
def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (medium speed)")
    config.addinivalue_line("markers", "slow: Slow tests (>5s)")


def pytest_collection_modifyitems(config, items):
    """Add markers from the test path"""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def pytest_report_header(config):
    return [
        f"Slow test threshold: {SLOW_TEST_THRESHOLD}s",
        f"Warning threshold: {WARNING_TEST_THRESHOLD}s",
    ]
