"""Booking decision flow for single and recurring requests.

IDLE -> PREVIEW -> NO_CONFLICT | ALL_CONFLICT | PARTIAL_CONFLICT -> COMMITTED | ABORTED

Nothing is persisted for a series with conflicts unless `confirm()` is
called explicitly; ALL_CONFLICT aborts without touching the committer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.core.enums import BookingStateEnum
from app.modules.scheduling.recurrence import ConflictSet, partition_by_conflict
from app.modules.scheduling.slots import OccupiedLike
from app.shared.exceptions import ConflictException

DECISION_STATES = frozenset(
    {
        BookingStateEnum.NO_CONFLICT,
        BookingStateEnum.ALL_CONFLICT,
        BookingStateEnum.PARTIAL_CONFLICT,
    },
)


@dataclass(slots=True)
class BatchBookingResult:
    """Per-occurrence outcome counts of a batch commit."""

    total_booked: int
    total_failed: int
    session_ids: list[UUID] = field(default_factory=list)
    series_id: UUID | None = None


class SessionCommitter(Protocol):
    """Persistence boundary the flow hands accepted occurrences to."""

    async def create_session(self, scheduled_at: datetime) -> UUID:
        """Persist one session or raise with a user-facing message."""

    async def create_recurring_sessions(self, occurrences: Sequence[datetime]) -> BatchBookingResult:
        """Persist occurrences independently; raise only on total failure."""


class BookingFlow:
    """One booking request walked from plan to commit or abort."""

    def __init__(
        self,
        committer: SessionCommitter,
        occurrences: Sequence[datetime],
        busy: Sequence[OccupiedLike],
        duration_minutes: int,
    ) -> None:
        if not occurrences:
            raise ValueError("Booking flow needs at least one occurrence")
        self.committer = committer
        self.occurrences = tuple(occurrences)
        self.busy = busy
        self.duration_minutes = duration_minutes
        self.state = BookingStateEnum.IDLE
        self.history: list[BookingStateEnum] = [BookingStateEnum.IDLE]
        self.conflict_set: ConflictSet | None = None
        self.result: BatchBookingResult | None = None

    @property
    def decision(self) -> BookingStateEnum | None:
        """Conflict branch taken, if the series went through preview."""
        for state in self.history:
            if state in DECISION_STATES:
                return state
        return None

    def _move(self, state: BookingStateEnum) -> None:
        self.state = state
        self.history.append(state)

    def _require(self, expected: BookingStateEnum, action: str) -> None:
        if self.state != expected:
            raise ConflictException(f"Cannot {action} booking in state {self.state}")

    async def submit(self) -> BookingStateEnum:
        """Run the request; returns the state the flow stopped in."""
        self._require(BookingStateEnum.IDLE, "submit")

        if len(self.occurrences) == 1:
            session_id = await self.committer.create_session(self.occurrences[0])
            self.result = BatchBookingResult(total_booked=1, total_failed=0, session_ids=[session_id])
            self._move(BookingStateEnum.COMMITTED)
            return self.state

        self._move(BookingStateEnum.PREVIEW)
        self.conflict_set = partition_by_conflict(self.occurrences, self.busy, self.duration_minutes)
        decision = self.conflict_set.decision()
        self._move(decision)

        if decision == BookingStateEnum.NO_CONFLICT:
            await self._commit(self.conflict_set.valid_sessions)
        elif decision == BookingStateEnum.ALL_CONFLICT:
            self._move(BookingStateEnum.ABORTED)
        return self.state

    async def confirm(self) -> BatchBookingResult:
        """Book only the non-conflicting occurrences of a partial series."""
        self._require(BookingStateEnum.PARTIAL_CONFLICT, "confirm")
        valid_sessions = self.conflict_set.valid_sessions if self.conflict_set else ()
        return await self._commit(valid_sessions)

    def cancel(self) -> None:
        """Drop a partial series without persisting anything."""
        self._require(BookingStateEnum.PARTIAL_CONFLICT, "cancel")
        self._move(BookingStateEnum.ABORTED)

    async def _commit(self, occurrences: Sequence[datetime]) -> BatchBookingResult:
        try:
            result = await self.committer.create_recurring_sessions(list(occurrences))
        except Exception:
            self._move(BookingStateEnum.IDLE)
            raise
        self.result = result
        self._move(BookingStateEnum.COMMITTED)
        return result
