"""
Curation Hooks - Observer pattern for entry events.

Every committed mutating operation produces exactly one event, which the
engine returns to the caller and hands to a CurationHooks observer.

Design Principles:
- Hooks are optional (NullHooks by default)
- Hook exceptions are caught and logged, never propagate
- Hooks run after the operation has committed
- Hooks receive immutable event data
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol, Union

from .models import display_id

logger = logging.getLogger(__name__)


# =============================================================================
# Event Dataclasses
# =============================================================================

@dataclass(frozen=True)
class EntryCreatedEvent:
    """Event emitted when an entry is created."""

    entry_id: bytes
    votes_minted: int
    effective_balance: int


@dataclass(frozen=True)
class UpvotedEvent:
    """Event emitted after an upvote."""

    entry_id: bytes
    effective_balance: int


@dataclass(frozen=True)
class DownvotedEvent:
    """Event emitted after a downvote."""

    entry_id: bytes
    effective_balance: int


@dataclass(frozen=True)
class WithdrawnEvent:
    """Event emitted after an owner withdrawal."""

    entry_id: bytes
    effective_balance: int


@dataclass(frozen=True)
class MetadataUpdatedEvent:
    """Event emitted when an owner replaces an entry's metadata."""

    entry_id: bytes
    metadata: bytes


CurationEvent = Union[
    EntryCreatedEvent,
    UpvotedEvent,
    DownvotedEvent,
    WithdrawnEvent,
    MetadataUpdatedEvent,
]


# =============================================================================
# Hooks Protocol
# =============================================================================

class CurationHooks(Protocol):
    """
    Protocol for curation event hooks.

    Implementations should be exception-safe; the engine catches and logs
    anything they raise.
    """

    def on_event(self, event: CurationEvent) -> None:
        """Called once per committed operation."""
        ...


class NullHooks:
    """No-op hooks implementation."""

    def on_event(self, event: CurationEvent) -> None:
        pass


class RecordingHooks:
    """Hooks that keep every event in order."""

    def __init__(self) -> None:
        self.events: List[CurationEvent] = []

    def on_event(self, event: CurationEvent) -> None:
        self.events.append(event)


class LoggingHooks:
    """Hooks that log all events for debugging."""

    def __init__(self, log_level: int = logging.INFO):
        self._level = log_level

    def on_event(self, event: CurationEvent) -> None:
        fields = {k: v for k, v in vars(event).items() if k != "entry_id"}
        label = display_id(event.entry_id)
        logger.log(
            self._level,
            f"[HOOK] {type(event).__name__}: id={label}, {fields}",
            extra={"context": {"event": type(event).__name__, "id": label, **fields}},
        )
