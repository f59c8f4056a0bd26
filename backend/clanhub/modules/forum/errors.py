"""
Forum engine exceptions.
"""


class ForumError(Exception):
    """Base class for forum engine failures."""


class ForumStoreError(ForumError):
    """A remote store call failed (transport or validation)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class VoteFailedError(ForumError):
    """
    A vote could not be fully applied.

    `vote_recorded` is True when the vote row was written but the
    score update failed, leaving the ledger ahead of the cached score.
    """

    def __init__(self, entity_id: str, vote_recorded: bool, cause: Exception) -> None:
        super().__init__(f"Vote on {entity_id} failed: {cause}")
        self.entity_id = entity_id
        self.vote_recorded = vote_recorded
