"""Errors raised to callers of the single-URL submission path.

Batch pipelines never raise these; they collect per-item failures into the
run's error list instead.
"""


class ResearchError(Exception):
    """A research request that could not be completed.

    The message is user-facing and is returned verbatim by the API.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateCommunityError(ResearchError):
    """The community is already in the directory."""

    def __init__(self, name: str) -> None:
        super().__init__(f'"{name}" is already in our directory!')
        self.name = name


class InsufficientEvidenceError(ResearchError):
    """Not enough evidence to build a profile (short page, not a community)."""
