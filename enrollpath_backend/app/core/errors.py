"""Error kinds that may leave the core.

Cycles, depth truncation and transcript ambiguity are reported inside the
returned structures, never raised.
"""


class EnrollPathError(Exception):
    pass


class NotFoundError(EnrollPathError):
    def __init__(self, kind: str, key):
        super().__init__(f"{kind} '{key}' not found.")
        self.kind = kind
        self.key = key


class ExtractionFailure(EnrollPathError):
    """Document bytes could not be turned into text.

    ``record`` is set by the ingestion pipeline once the failed transcript
    record has been persisted with status ``error``.
    """

    def __init__(self, reason: str, record=None):
        super().__init__(reason)
        self.reason = reason
        self.record = record


class InvalidTransitionError(EnrollPathError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move transcript from '{current}' to '{target}'.")
        self.current = current
        self.target = target
