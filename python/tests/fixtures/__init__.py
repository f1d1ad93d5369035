"""
Pytest fixtures for xnotify tests.

Fixtures are organized by test category:
- watcher.py: FileWatcher and event fixtures
- engine.py: EngineConfig and Engine fixtures
"""
