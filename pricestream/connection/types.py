from enum import IntEnum, auto


class ConnectionState(IntEnum):
    """Stream client lifecycle state"""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSING = auto()  # Closed by peer, deciding whether to retry
    ERRORING = auto()  # Failed with an error, deciding whether to retry
    RECONNECTING = auto()  # Reconnect timer pending
    PERMANENTLY_FAILED = auto()  # Retries exhausted, needs initialize()


class ConnectionEvent(IntEnum):
    CONNECT = auto()
    OPENED = auto()
    CLOSED = auto()
    ERRORED = auto()
    BACKOFF = auto()
    EXHAUSTED = auto()
    RETRY = auto()
    DISCONNECT = auto()


class Effect(IntEnum):
    """Side effect the client performs after a transition"""

    OPEN_CONNECTION = auto()
    CLOSE_CONNECTION = auto()
    CANCEL_TIMER = auto()
    SCHEDULE_RECONNECT = auto()
    SET_CONNECTED = auto()
    SET_DISCONNECTED = auto()
    RECORD_ERROR = auto()
    REPORT_PERMANENT_FAILURE = auto()
