"""Exception types raised by the Study Clock core."""


class StudyClockError(Exception):
    """Base exception for Study Clock errors."""

    pass


class IllegalTransitionError(StudyClockError):
    """A timer operation was invoked from a state that does not allow it."""

    def __init__(self, action: str, state: str) -> None:
        super().__init__(f"Cannot {action} while the timer is {state}")
        self.action = action
        self.state = state


class LedgerError(StudyClockError):
    """The session ledger could not be persisted."""

    pass


class CatalogError(StudyClockError):
    """A syllabus or task file could not be read, or a lookup in it failed."""

    pass
