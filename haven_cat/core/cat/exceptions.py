"""
Exceptions raised by the CAT session orchestrator.

Only truly invalid requests surface as exceptions. Numerical problems inside
estimation and selection are recovered locally and never raise.
"""


class CATError(Exception):
    """Base class for CAT engine errors."""


class SessionNotFoundError(CATError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"CAT session {session_id} not found")


class SessionNotInProgressError(CATError):
    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"CAT session {session_id} is {status}")


class ItemNotFoundError(CATError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found in item bank")


class ItemAlreadyAnsweredError(CATError):
    def __init__(self, session_id: str, item_id: str):
        self.session_id = session_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} was already answered in session {session_id}")


class ConcurrentSubmissionError(CATError):
    """Another submission for the same session is being processed."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"CAT session {session_id} is processing another submission")


class StaleSessionError(CATError):
    """Optimistic version check failed when saving a session."""

    def __init__(self, session_id: str, expected_version: int, actual_version: int):
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"CAT session {session_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class NoItemsAvailableError(CATError):
    """The item bank has no items to start a session with."""

    def __init__(self) -> None:
        super().__init__("No calibrated items available in the item bank")


class SessionNotCompletedError(CATError):
    """A report was requested for a session that is still in progress."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"CAT session {session_id} is not completed yet")
