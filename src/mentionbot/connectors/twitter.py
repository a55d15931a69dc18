"""X (Twitter) connector using the official API v2 through tweepy.

Mentions are found with the recent-search endpoint, which has the most
generous quota (450 requests per 15 minutes for app auth). The read client
returns raw ``requests`` responses so the quota headers are available to the
scheduler's rate-limit tracker.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import requests
import tweepy

from mentionbot.connectors.base import RateLimitError, SocialClient, TransientInfraError
from mentionbot.connectors.rate_limiter import SEARCH_ENDPOINT
from mentionbot.logging import get_logger
from mentionbot.models.mention import Mention, RateLimitInfo

_TWEET_FIELDS = ["created_at", "author_id", "conversation_id"]
_USER_FIELDS = ["username"]
_EXPANSIONS = ["author_id"]


def _parse_reset(headers: Any) -> datetime | None:
    """Read ``x-rate-limit-reset`` (epoch seconds) from response headers."""
    if headers is None:
        return None
    raw = headers.get("x-rate-limit-reset")
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=UTC)
    except (TypeError, ValueError):
        return None


def _parse_rate_limit(headers: Any) -> RateLimitInfo | None:
    """Build RateLimitInfo from response headers, if all of them are present."""
    reset_at = _parse_reset(headers)
    remaining = headers.get("x-rate-limit-remaining") if headers is not None else None
    if reset_at is None or remaining is None:
        return None
    limit = headers.get("x-rate-limit-limit")
    try:
        return RateLimitInfo(
            limit=int(limit) if limit is not None else None,
            remaining=int(remaining),
            reset_at=reset_at,
        )
    except (TypeError, ValueError):
        return None


def _parse_mentions(payload: dict[str, Any]) -> list[Mention]:
    """Convert a search response body into Mention models (API order)."""
    users: dict[str, str] = {}
    for user in (payload.get("includes") or {}).get("users", []):
        users[str(user.get("id"))] = user.get("username")

    mentions: list[Mention] = []
    for tweet in payload.get("data") or []:
        created_raw = tweet.get("created_at")
        created_at = None
        if created_raw:
            created_at = datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
        author_id = tweet.get("author_id")
        mentions.append(
            Mention(
                id=str(tweet["id"]),
                text=tweet.get("text", ""),
                author_id=str(author_id) if author_id is not None else None,
                author_username=users.get(str(author_id)),
                created_at=created_at,
            )
        )
    return mentions


class TwitterClient(SocialClient):
    """Fetches bot mentions and posts replies on X.

    Args:
        bearer_token: App bearer token (read access).
        api_key: OAuth 1.0a consumer key (write access, optional).
        api_secret: OAuth 1.0a consumer secret.
        access_token: OAuth 1.0a access token.
        access_secret: OAuth 1.0a access token secret.
        max_results: Page size for recent search (10-100).
        read_client: Pre-configured tweepy client for reads (for testing).
        write_client: Pre-configured tweepy client for writes (for testing).
    """

    def __init__(
        self,
        bearer_token: str = "",
        api_key: str = "",
        api_secret: str = "",
        access_token: str = "",
        access_secret: str = "",
        max_results: int = 10,
        read_client: tweepy.Client | None = None,
        write_client: tweepy.Client | None = None,
    ) -> None:
        self._max_results = max_results
        self._logger = get_logger("connector.twitter")

        if read_client is None:
            if not bearer_token:
                raise ValueError("A bearer token is required to read mentions")
            read_client = tweepy.Client(
                bearer_token=bearer_token,
                return_type=requests.Response,
                wait_on_rate_limit=False,
            )
        self._read_client = read_client

        if write_client is None and all((api_key, api_secret, access_token, access_secret)):
            write_client = tweepy.Client(
                consumer_key=api_key,
                consumer_secret=api_secret,
                access_token=access_token,
                access_token_secret=access_secret,
            )
        self._write_client = write_client

    @property
    def can_reply(self) -> bool:
        return self._write_client is not None

    async def fetch_mentions_since(
        self, handle: str, since_id: str | None = None
    ) -> tuple[list[Mention], RateLimitInfo | None]:
        """Search recent tweets mentioning ``handle``, excluding its own tweets.

        Raises:
            RateLimitError: On HTTP 429.
            TransientInfraError: On network errors and 5xx responses.
        """
        handle = handle.lstrip("@")
        query = f"@{handle} -from:{handle}"
        params: dict[str, Any] = {
            "max_results": self._max_results,
            "tweet_fields": _TWEET_FIELDS,
            "user_fields": _USER_FIELDS,
            "expansions": _EXPANSIONS,
        }
        if since_id:
            params["since_id"] = since_id

        try:
            response = await asyncio.to_thread(
                self._read_client.search_recent_tweets, query, **params
            )
        except tweepy.TooManyRequests as e:
            reset_at = _parse_reset(getattr(e.response, "headers", None))
            raise RateLimitError(SEARCH_ENDPOINT, reset_at) from e
        except tweepy.TwitterServerError as e:
            raise TransientInfraError(f"X server error: {e}") from e
        except requests.RequestException as e:
            raise TransientInfraError(f"X request failed: {e}") from e

        payload = response.json() if response.content else {}
        mentions = _parse_mentions(payload)
        rate_limit = _parse_rate_limit(response.headers)

        self._logger.debug(
            "mentions_fetched",
            handle=handle,
            since_id=since_id,
            count=len(mentions),
            remaining=rate_limit.remaining if rate_limit else None,
        )
        return mentions, rate_limit

    async def reply(self, message_id: str, text: str) -> str | None:
        """Reply to a tweet. Returns the new tweet id, or None without write credentials."""
        if self._write_client is None:
            self._logger.debug("reply_skipped_no_credentials", message_id=message_id)
            return None

        response = await asyncio.to_thread(
            self._write_client.create_tweet,
            text=text,
            in_reply_to_tweet_id=message_id,
        )
        data = getattr(response, "data", None) or {}
        reply_id = data.get("id")
        self._logger.info("reply_posted", message_id=message_id, reply_id=reply_id)
        return str(reply_id) if reply_id is not None else None
