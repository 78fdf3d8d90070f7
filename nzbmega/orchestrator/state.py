"""Per-slot state machine."""
from typing import List, Optional
import logging

from ..models import SlotState
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)

_ORDER: List[SlotState] = [
    SlotState.PENDING,
    SlotState.DOWNLOADED,
    SlotState.FOLDER_CREATED,
    SlotState.UPLOADING,
    SlotState.UPLOADED,
    SlotState.PUBLISHED,
]


class SlotStateMachine:
    """
    Tracks the state of one slot.

    Transitions are strictly sequential; FAILED is reachable from any
    non-terminal state. Every transition emits a "slot_state" event with
    (slot_name, state).
    """

    def __init__(self, slot_name: str, events: Optional[EventEmitter] = None):
        self.slot_name = slot_name
        self._events = events or EventEmitter()
        self._state = SlotState.PENDING
        self._history: List[SlotState] = [SlotState.PENDING]

    @property
    def state(self) -> SlotState:
        return self._state

    @property
    def history(self) -> List[SlotState]:
        return list(self._history)

    async def advance(self, state: SlotState) -> None:
        if self._state.is_terminal:
            raise RuntimeError(
                f"slot '{self.slot_name}' is {self._state.value}, cannot move to {state.value}"
            )
        if state != SlotState.FAILED:
            expected = _ORDER[_ORDER.index(self._state) + 1]
            if state != expected:
                raise RuntimeError(
                    f"slot '{self.slot_name}' cannot go from {self._state.value} to {state.value}"
                )

        logger.debug(f"Slot '{self.slot_name}': {self._state.value} -> {state.value}")
        self._state = state
        self._history.append(state)
        await self._events.emit("slot_state", self.slot_name, state)

    async def fail(self) -> SlotState:
        """Move to FAILED, returning the state the failure happened in."""
        stage = self._state
        await self.advance(SlotState.FAILED)
        return stage
