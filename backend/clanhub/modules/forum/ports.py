"""
Collaborators the forum engine consumes but does not own.

Identity, moderation capability, notification and navigation state
are provided by the surrounding application.
"""

from dataclasses import dataclass
from typing import Protocol

from loguru import logger


class Notifier(Protocol):
    """Fire-and-forget sink for user-visible failure messages."""

    def push(self, message_key: str) -> None: ...


class IdentityProvider(Protocol):
    """Exposes the active user id; empty string when signed out."""

    @property
    def current_user_id(self) -> str: ...


class CapabilityProvider(Protocol):
    """Exposes whether the active user may moderate the forum."""

    @property
    def can_moderate(self) -> bool: ...


@dataclass(frozen=True)
class NavigationState:
    """Query-string state present when the forum is opened."""

    category_slug: str = ""
    post_id: str = ""
    page: str = ""


@dataclass
class StaticSession:
    """Identity and capability fixed by the caller."""

    current_user_id: str = ""
    can_moderate: bool = False


class LoggingNotifier:
    """Notifier that only logs the message key."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def push(self, message_key: str) -> None:
        self.messages.append(message_key)
        logger.warning(f"Forum notification: {message_key}")
