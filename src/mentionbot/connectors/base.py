"""Abstract social connector interface.

Defines the SocialClient ABC that social network integrations implement, plus
the errors the scheduler distinguishes when a fetch fails.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from mentionbot.models.mention import Mention, RateLimitInfo


class RateLimitError(Exception):
    """Raised when the social API rejects a call for exceeding its quota.

    Attributes:
        endpoint: Endpoint category that was throttled.
        reset_at: Authoritative reset time reported by the server, if any.
    """

    def __init__(self, endpoint: str, reset_at: datetime | None = None) -> None:
        self.endpoint = endpoint
        self.reset_at = reset_at
        detail = f" until {reset_at.isoformat()}" if reset_at else ""
        super().__init__(f"Rate limited on {endpoint}{detail}")


class TransientInfraError(Exception):
    """Raised for timeouts, connection resets and 5xx responses."""


class SocialClient(ABC):
    """Read/write access to a social network on behalf of bots."""

    @abstractmethod
    async def fetch_mentions_since(
        self, handle: str, since_id: str | None = None
    ) -> tuple[list[Mention], RateLimitInfo | None]:
        """Fetch mentions of ``handle`` newer than ``since_id``.

        Args:
            handle: Bot handle without the leading ``@``.
            since_id: Only return messages with a higher id.

        Returns:
            Tuple of (mentions in API order, quota info if reported).
            The API order is newest first.

        Raises:
            RateLimitError: If the endpoint is throttled.
            TransientInfraError: On network or server failure.
        """

    @abstractmethod
    async def reply(self, message_id: str, text: str) -> str | None:
        """Post ``text`` as a reply to ``message_id``.

        Returns:
            Id of the posted reply, or None if posting is unavailable.
        """
