"""
Stream client lifecycle as an explicit transition table.

Every connectivity side effect (status flag, error message, reconnect
scheduling, teardown) is listed in TRANSITIONS; the client only executes
the effects a transition returns.

    DISCONNECTED -> CONNECTING -> CONNECTED -> (CLOSING | ERRORING)
        -> RECONNECTING -> CONNECTING -> ...
        -> PERMANENTLY_FAILED  (after max_attempts consecutive failures)
"""

from typing import Final, NamedTuple

from pricestream.connection.types import ConnectionEvent, ConnectionState, Effect
from pricestream.exceptions import InvalidTransition

DEFAULT_MAX_ATTEMPTS: Final[int] = 5


class Transition(NamedTuple):
    target: ConnectionState
    effects: tuple[Effect, ...] = ()
    reset_attempts: bool = False


_State = ConnectionState
_Event = ConnectionEvent

_TEARDOWN: Final[tuple[Effect, ...]] = (Effect.CANCEL_TIMER, Effect.CLOSE_CONNECTION)

TRANSITIONS: Final[dict[tuple[ConnectionState, ConnectionEvent], Transition]] = {
    # Connect (initial, or external re-initialize after permanent failure)
    (_State.DISCONNECTED, _Event.CONNECT): Transition(
        _State.CONNECTING, (Effect.OPEN_CONNECTION,), reset_attempts=True
    ),
    (_State.PERMANENTLY_FAILED, _Event.CONNECT): Transition(
        _State.CONNECTING, (Effect.OPEN_CONNECTION,), reset_attempts=True
    ),
    (_State.CONNECTING, _Event.OPENED): Transition(
        _State.CONNECTED, (Effect.SET_CONNECTED,), reset_attempts=True
    ),
    # Failures
    (_State.CONNECTING, _Event.CLOSED): Transition(
        _State.CLOSING, (Effect.SET_DISCONNECTED,)
    ),
    (_State.CONNECTED, _Event.CLOSED): Transition(
        _State.CLOSING, (Effect.SET_DISCONNECTED,)
    ),
    (_State.CONNECTING, _Event.ERRORED): Transition(
        _State.ERRORING, (Effect.SET_DISCONNECTED, Effect.RECORD_ERROR)
    ),
    (_State.CONNECTED, _Event.ERRORED): Transition(
        _State.ERRORING, (Effect.SET_DISCONNECTED, Effect.RECORD_ERROR)
    ),
    # Retry decision
    (_State.CLOSING, _Event.BACKOFF): Transition(
        _State.RECONNECTING, (Effect.SCHEDULE_RECONNECT,)
    ),
    (_State.ERRORING, _Event.BACKOFF): Transition(
        _State.RECONNECTING, (Effect.SCHEDULE_RECONNECT,)
    ),
    (_State.CLOSING, _Event.EXHAUSTED): Transition(
        _State.PERMANENTLY_FAILED, (Effect.REPORT_PERMANENT_FAILURE,)
    ),
    (_State.ERRORING, _Event.EXHAUSTED): Transition(
        _State.PERMANENTLY_FAILED, (Effect.REPORT_PERMANENT_FAILURE,)
    ),
    (_State.RECONNECTING, _Event.RETRY): Transition(
        _State.CONNECTING, (Effect.OPEN_CONNECTION,)
    ),
    # Teardown is valid from every state
    **{
        (state, _Event.DISCONNECT): Transition(
            _State.DISCONNECTED,
            _TEARDOWN + (Effect.SET_DISCONNECTED,)
            if state == _State.CONNECTED
            else _TEARDOWN,
        )
        for state in ConnectionState
    },
}


class ConnectionStateMachine:
    """Tracks lifecycle state and consecutive failed attempts"""

    __slots__ = ("_state", "_attempts", "_max_attempts")

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must not be negative")

        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._max_attempts = max_attempts

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def can_fire(self, event: ConnectionEvent) -> bool:
        return (self._state, event) in TRANSITIONS

    def fire(self, event: ConnectionEvent) -> tuple[Effect, ...]:
        """
        Apply a single transition.

        Raises:
            InvalidTransition: event is not defined for the current state
        """
        transition = TRANSITIONS.get((self._state, event))
        if transition is None:
            raise InvalidTransition(self._state, event)

        self._state = transition.target
        if transition.reset_attempts:
            self._attempts = 0

        return transition.effects

    def fail(self, event: ConnectionEvent) -> tuple[Effect, ...]:
        """
        Apply a CLOSED or ERRORED event and resolve the retry decision.

        The attempt counter is incremented; up to max_attempts the machine
        moves to RECONNECTING, beyond it to PERMANENTLY_FAILED.
        """
        if event not in (ConnectionEvent.CLOSED, ConnectionEvent.ERRORED):
            raise ValueError(f"{event!r} is not a failure event")

        effects = self.fire(event)
        self._attempts += 1

        if self._attempts <= self._max_attempts:
            return effects + self.fire(ConnectionEvent.BACKOFF)

        return effects + self.fire(ConnectionEvent.EXHAUSTED)
