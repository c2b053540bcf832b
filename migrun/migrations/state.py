"""Run state machine — enforces the order of a migrate() call's phases."""

from __future__ import annotations

from migrun.exceptions import MigrationStateError
from migrun.types import DatabaseUid, RunState

_FAILABLE = {
    RunState.NOT_STARTED,
    RunState.RESOLVING_DATABASE,
    RunState.CONNECTION_ACQUIRED,
    RunState.SCHEMA_READY,
    RunState.BATCH_COMPUTED,
    RunState.APPLYING,
}

VALID_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.NOT_STARTED: {RunState.RESOLVING_DATABASE},
    RunState.RESOLVING_DATABASE: {RunState.CONNECTION_ACQUIRED},
    RunState.CONNECTION_ACQUIRED: {RunState.SCHEMA_READY},
    RunState.SCHEMA_READY: {RunState.BATCH_COMPUTED},
    RunState.BATCH_COMPUTED: {RunState.APPLYING, RunState.COMPLETED},
    RunState.APPLYING: {RunState.APPLYING, RunState.COMPLETED},
    RunState.COMPLETED: set(),  # terminal
    RunState.FAILED: set(),  # terminal
}
for _state in _FAILABLE:
    VALID_TRANSITIONS[_state].add(RunState.FAILED)


class RunStateMachine:
    """Tracks the phase of one migrate() call against one database."""

    def __init__(self, database: DatabaseUid) -> None:
        self.database = database
        self._state = RunState.NOT_STARTED
        self.applying: str | None = None  # name of the unit in flight

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def finished(self) -> bool:
        return not VALID_TRANSITIONS[self._state]

    def transition(self, target: RunState, applying: str | None = None) -> None:
        if target not in VALID_TRANSITIONS[self._state]:
            raise MigrationStateError(
                f"Cannot move migration run on {self.database} "
                f"from {self._state.value} to {target.value}"
            )
        self._state = target
        if target is RunState.APPLYING:
            self.applying = applying
