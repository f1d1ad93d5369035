"""
Pytest configuration and fixtures for xnotify tests.

Specialized fixtures are organized in the fixtures/ directory:
- fixtures.watcher: FileWatcher and event fixtures
- fixtures.engine: EngineConfig, streams and running Engine fixtures
"""

import pytest

# Load fixture modules
pytest_plugins = [
    "tests.fixtures.watcher",
    "tests.fixtures.engine",
]


@pytest.fixture
def write_file(tmp_path):
    """Create a file under tmp_path, making parent directories."""
    def _write(rel_path: str, content: str = ""):
        file_path = tmp_path / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        return file_path
    return _write
