"""
Event type definitions.

This module defines the core types that flow through the engine:
- Operation enum: kinds of file-system change
- Event: one immutable change notification
- Release: a batch handed from the debouncer to the task consumer
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from xnotify.errors import InvalidEventError


class Operation(Enum):
    """File system operations. Values are the strings used on the wire."""

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    ATTRIBUTE = "chmod"  # Attribute/permission change

    @classmethod
    def parse(cls, value: str) -> "Operation":
        """Look up an operation by wire string (case-insensitive)."""
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            raise InvalidEventError(f"Unknown operation: {value!r}") from None


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def normalize_path(path: str) -> str:
    """Forward-slash form of a relative path."""
    return path.replace("\\", "/")


@dataclass(frozen=True)
class Event:
    """
    One change notification.

    Attributes:
    -----------
    operation: Kind of change
    path: Path relative to the watch base, forward slashes
    occurred_at: Milliseconds since the epoch
    is_directory: True when the change was reported for a directory
    """

    operation: Operation
    path: str
    occurred_at: int = field(default_factory=now_ms)
    is_directory: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (is_directory is local only)."""
        return {
            "operation": self.operation.value,
            "path": self.path,
            "time": self.occurred_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """
        Build an Event from its wire representation.

        Raises:
        -------
        InvalidEventError: If data is not an object with a known operation
            and a string path
        """
        if not isinstance(data, dict):
            raise InvalidEventError("Event payload must be a JSON object")

        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise InvalidEventError("Event payload needs a non-empty 'path' string")

        occurred_at = data.get("time", 0)
        if isinstance(occurred_at, bool) or not isinstance(occurred_at, int):
            raise InvalidEventError("Event 'time' must be an integer")

        return cls(
            operation=Operation.parse(data.get("operation")),
            path=normalize_path(path),
            occurred_at=occurred_at,
        )

    def restamped(self, occurred_at: int | None = None) -> "Event":
        """Copy of this event with a new timestamp (defaults to now)."""
        return Event(
            operation=self.operation,
            path=self.path,
            occurred_at=now_ms() if occurred_at is None else occurred_at,
            is_directory=self.is_directory,
        )

    def __str__(self) -> str:
        return f"{self.operation.value} {self.path}"


@dataclass(frozen=True)
class Release:
    """A released batch on its way to the task consumer."""

    events: tuple[Event, ...] = ()
    triggered: bool = False  # Synthetic startup trigger

    def __bool__(self) -> bool:
        return bool(self.events) or self.triggered
