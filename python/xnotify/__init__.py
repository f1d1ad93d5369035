"""
xnotify - watch files and react to changes

Prints change events, forwards them to another xnotify over HTTP, and re-runs
a pipeline of commands whenever the watched files settle.
"""

__version__ = "0.2.0"

# DO NOT import submodules here - the CLI imports watchdog/uvicorn lazily
