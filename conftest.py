"""Pytest configuration for splicebench."""

# Prevent collection from source tree
collect_ignore = ["src"]


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies, fast)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require a Splice Machine database and sqlshell)"
    )
    config.addinivalue_line("markers", "slow: Slow tests (skip with -m 'not slow')")
