"""
Engine configuration.

EngineConfig holds everything the CLI collects. resolve() validates it and
returns a normalized copy (absolute base path, compiled exclusion patterns,
full forward URL); anything wrong is a ConfigurationError, raised before the
engine starts.
"""

import os
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from xnotify.errors import ConfigurationError
from xnotify.watcher.types import Operation


class DirectoryEventPolicy(Enum):
    """
    What to do with change events reported for directories.

    A write to src/debug.log also changes the directory src, so an exclusion
    that drops the file does not drop the directory event. DROP ignores all
    directory events; KEEP lets them through to the exclusion patterns.
    """

    DROP = "drop"
    KEEP = "keep"


@dataclass(frozen=True)
class TaskSpec:
    """One command of the task pipeline: executable followed by arguments."""

    argv: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.argv:
            raise ConfigurationError("A task needs at least an executable name")

    @property
    def name(self) -> str:
        return self.argv[0]

    @property
    def args(self) -> tuple[str, ...]:
        return self.argv[1:]

    def __str__(self) -> str:
        return " ".join(self.argv)


def full_address(addr: str) -> str:
    """Expand a bare ':port' to 'localhost:port'."""
    if addr.startswith(":"):
        addr = "localhost" + addr
    return addr


def full_url(addr: str) -> str:
    """Expand an address to a URL, defaulting the scheme to http."""
    addr = full_address(addr)
    if "://" not in addr:
        addr = "http://" + addr
    return addr


def split_address(addr: str) -> tuple[str, int]:
    """
    Split 'host:port' (or ':port') into host and port.

    Raises:
    -------
    ConfigurationError: If the port is missing or not a number
    """
    host, sep, port = full_address(addr).rpartition(":")
    if not sep or not host:
        raise ConfigurationError(f"Listen address needs host:port, got {addr!r}")
    try:
        return host, int(port)
    except ValueError:
        raise ConfigurationError(f"Invalid port in listen address {addr!r}") from None


@dataclass
class EngineConfig:
    """
    Everything needed to run one engine.

    Attributes:
    -----------
    base_path: Working directory of tasks; event paths are relative to it
    batch_ms: Debounce window in milliseconds (0 = no batching)
    forward_address: Send every event to this xnotify listener
    listen_address: Receive events from other xnotify instances
    tasks: Commands to run in order after each batch
    trigger_immediately: Run the tasks once at startup
    exclude_patterns: Regular expressions searched in the relative path
    suppress_output: Do not stream task output to stderr
    terminator: Printed to stdout after each printed batch (batch_ms > 0)
    trigger_operations: Operations that reach the dispatcher
    dedupe_paths: Keep only the latest event per path in a batch
    directory_events: Policy for events reported on directories
    preempt: Kill the running task when a new event arrives
    includes: Glob patterns under base_path to watch
    recursive: Recurse into directories when expanding includes
    """

    base_path: str = "."
    batch_ms: int = 0
    forward_address: Optional[str] = None
    listen_address: Optional[str] = None
    tasks: list[TaskSpec] = field(default_factory=list)
    trigger_immediately: bool = False
    exclude_patterns: list[str] = field(default_factory=list)
    suppress_output: bool = False
    terminator: str = ""
    trigger_operations: frozenset[Operation] = frozenset({Operation.WRITE})
    dedupe_paths: bool = False
    directory_events: DirectoryEventPolicy = DirectoryEventPolicy.DROP
    preempt: bool = True
    includes: list[str] = field(default_factory=list)
    recursive: bool = True
    verbose: bool = False
    log_dir: Optional[str] = None

    # Filled in by resolve()
    compiled_excludes: tuple[re.Pattern, ...] = field(default=(), repr=False)

    @classmethod
    def from_env(cls, **overrides) -> "EngineConfig":
        """
        Build a config, taking addresses from the environment when not given.

        Environment:
            XNOTIFY_LISTEN: default listen_address
            XNOTIFY_CLIENT: default forward_address
        """
        overrides.setdefault("listen_address", os.environ.get("XNOTIFY_LISTEN") or None)
        overrides.setdefault("forward_address", os.environ.get("XNOTIFY_CLIENT") or None)
        return cls(**overrides)

    @property
    def has_tasks(self) -> bool:
        return bool(self.tasks)

    @property
    def batch_seconds(self) -> float:
        return self.batch_ms / 1000

    @property
    def base(self) -> Path:
        return Path(self.base_path)

    def resolve(self) -> "EngineConfig":
        """
        Validate and normalize.

        Returns:
            A new EngineConfig with an absolute base path, compiled exclusion
            patterns and a full forward URL

        Raises:
            ConfigurationError: On any invalid setting
        """
        base = Path(self.base_path).expanduser()
        try:
            base = base.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ConfigurationError(f"Cannot resolve base path {self.base_path!r}: {e}") from e
        if not base.is_dir():
            raise ConfigurationError(f"Base path is not a directory: {base}")

        if isinstance(self.batch_ms, bool) or not isinstance(self.batch_ms, int):
            raise ConfigurationError(f"batch_ms must be an integer, got {self.batch_ms!r}")
        if self.batch_ms < 0:
            raise ConfigurationError(f"batch_ms must not be negative, got {self.batch_ms}")

        compiled = []
        for pattern in self.exclude_patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                raise ConfigurationError(f"Invalid exclude pattern {pattern!r}: {e}") from e

        forward = self.forward_address
        if forward is not None:
            if not forward.strip():
                raise ConfigurationError("Forward address must not be empty")
            forward = full_url(forward.strip())

        if self.listen_address is not None:
            split_address(self.listen_address)

        if not self.trigger_operations:
            raise ConfigurationError("At least one triggering operation is required")

        return replace(
            self,
            base_path=str(base),
            forward_address=forward,
            tasks=[t if isinstance(t, TaskSpec) else TaskSpec(tuple(t)) for t in self.tasks],
            trigger_operations=frozenset(self.trigger_operations),
            compiled_excludes=tuple(compiled),
        )

    def unused_options(self) -> list[str]:
        """Names of options that are set but have no effect."""
        unused = []
        if self.terminator and self.batch_ms == 0:
            unused.append("terminator")
        if self.trigger_immediately and not self.has_tasks:
            unused.append("trigger")
        if not self.preempt and not self.has_tasks:
            unused.append("queue")
        if self.suppress_output and not self.has_tasks:
            unused.append("silent")
        return unused

    def is_excluded(self, rel_path: str) -> bool:
        """True when any exclusion pattern matches somewhere in rel_path."""
        patterns = self.compiled_excludes or [re.compile(p) for p in self.exclude_patterns]
        return any(p.search(rel_path) for p in patterns)
