"""
Per-slot lifecycle state machine.

A slot only leaves a pending state on a server refresh. Local writes move
a slot into PENDING_COMMIT or PENDING_CANCEL; the next refresh decides
whether it lands in BOOKED or UNBOOKED.

Usage:
    lifecycle = SlotLifecycle()
    lifecycle.transition(SlotTrigger.COMMIT_ACCEPTED)
    lifecycle.transition(SlotTrigger.REFRESH_BOOKED)
    assert lifecycle.current_state == SlotState.BOOKED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from lead_booking.schemas.booking_schema import SlotState

logger = logging.getLogger(__name__)


class SlotTrigger(str, Enum):
    """Events that move a slot between states."""
    COMMIT_ACCEPTED = "commit_accepted"
    CANCEL_ACCEPTED = "cancel_accepted"
    REFRESH_BOOKED = "refresh_booked"
    REFRESH_FREE = "refresh_free"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: SlotState
    to_state: SlotState
    trigger: SlotTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: SlotState
    entered_at: datetime
    trigger: Optional[SlotTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class SlotLifecycle:
    """
    Client-observed lifecycle of one slot.

    Every transition is listed explicitly. Settled states accept both
    refresh outcomes so that bookings made or cancelled elsewhere are
    picked up; pending states accept nothing but a refresh. History only
    records visits, so repeated refreshes of a settled slot add nothing.
    """

    TRANSITIONS: list[Transition] = [
        # --- Local writes accepted by the server ---
        Transition(SlotState.UNBOOKED, SlotState.PENDING_COMMIT, SlotTrigger.COMMIT_ACCEPTED),
        Transition(SlotState.BOOKED, SlotState.PENDING_CANCEL, SlotTrigger.CANCEL_ACCEPTED),

        # --- Pending resolved by refresh ---
        Transition(SlotState.PENDING_COMMIT, SlotState.BOOKED, SlotTrigger.REFRESH_BOOKED),
        Transition(SlotState.PENDING_COMMIT, SlotState.UNBOOKED, SlotTrigger.REFRESH_FREE),
        Transition(SlotState.PENDING_CANCEL, SlotState.UNBOOKED, SlotTrigger.REFRESH_FREE),
        Transition(SlotState.PENDING_CANCEL, SlotState.BOOKED, SlotTrigger.REFRESH_BOOKED),

        # --- Settled states follow the server ---
        Transition(SlotState.UNBOOKED, SlotState.UNBOOKED, SlotTrigger.REFRESH_FREE),
        Transition(SlotState.UNBOOKED, SlotState.BOOKED, SlotTrigger.REFRESH_BOOKED),
        Transition(SlotState.BOOKED, SlotState.BOOKED, SlotTrigger.REFRESH_BOOKED),
        Transition(SlotState.BOOKED, SlotState.UNBOOKED, SlotTrigger.REFRESH_FREE),
    ]

    def __init__(self, initial: SlotState = SlotState.UNBOOKED) -> None:
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> SlotState:
        return self._current_state

    def transition(self, trigger: SlotTrigger) -> SlotState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new slot state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                if old_state == t.to_state:
                    return self._current_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Slot transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[SlotTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_pending(self) -> bool:
        return self._current_state in (SlotState.PENDING_COMMIT, SlotState.PENDING_CANCEL)
