"""Playback queue state and next/previous navigation with wraparound.

The controller owns a single :class:`PlaybackQueue` per browsing session.  All
mutations replace the state synchronously, so the most recent call always wins
and is visible to the very next read.  Navigation never raises: an empty queue
turns ``next``/``previous`` into no-ops and the ends of the queue wrap around.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from app.errors import AuthenticationRequiredError
from app.logging import get_logger

_logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class PlaybackQueue:
    """Ordered track identifiers plus the identifier currently playing."""

    ids: tuple[str, ...] = ()
    active_id: str | None = None

    @classmethod
    def create(cls, ids: Iterable[str], active_id: str | None = None) -> PlaybackQueue:
        """Build a queue whose ``active_id`` is guaranteed to be part of ``ids``."""

        ordered = tuple(ids)
        if active_id is not None and active_id not in ordered:
            raise ValueError(f"active track {active_id!r} is not part of the queue")
        return cls(ids=ordered, active_id=active_id)

    def index_of_active(self) -> int:
        """Position of the active track, ``-1`` when absent or not queued."""

        if self.active_id is None:
            return -1
        try:
            return self.ids.index(self.active_id)
        except ValueError:
            return -1


@dataclass(slots=True)
class PlaybackQueueController:
    """Mutators for one player's queue."""

    state: PlaybackQueue = field(default_factory=PlaybackQueue)

    @property
    def ids(self) -> tuple[str, ...]:
        return self.state.ids

    @property
    def active_id(self) -> str | None:
        return self.state.active_id

    def set_ids(self, ids: Sequence[str]) -> None:
        self.state = replace(self.state, ids=tuple(ids))

    def set_id(self, track_id: str) -> None:
        # Membership in ``ids`` is the caller's responsibility.
        self.state = replace(self.state, active_id=track_id)

    def reset(self) -> None:
        self.state = PlaybackQueue()

    def next(self) -> str | None:
        """Advance to the following track, wrapping to the first one."""

        ids = self.state.ids
        if not ids:
            return None
        candidate = self.state.index_of_active() + 1
        target = ids[candidate] if candidate < len(ids) else ids[0]
        self.set_id(target)
        return target

    def previous(self) -> str | None:
        """Step back to the preceding track, wrapping to the last one."""

        ids = self.state.ids
        if not ids:
            return None
        candidate = self.state.index_of_active() - 1
        target = ids[candidate] if candidate >= 0 else ids[-1]
        self.set_id(target)
        return target

    def play(self, track_ids: Sequence[str], track_id: str, *, user_id: str | None) -> None:
        """Start ``track_id`` with ``track_ids`` as the queue for a signed-in user."""

        if not user_id:
            raise AuthenticationRequiredError("Sign in to play songs.")
        self.set_id(track_id)
        self.set_ids(track_ids)
        _logger.debug(
            "Playback queue replaced",
            extra={"event": "player.play", "queue_length": len(self.state.ids)},
        )


__all__ = ["PlaybackQueue", "PlaybackQueueController"]
