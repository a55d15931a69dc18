"""Social and blockchain connectors.

Re-exports core connector classes:

    from mentionbot.connectors import SocialClient, RateLimitError
    from mentionbot.connectors import RateLimitTracker, SEARCH_ENDPOINT
    from mentionbot.connectors import TwitterClient, SolanaWalletClient
"""

from mentionbot.connectors.base import RateLimitError, SocialClient, TransientInfraError
from mentionbot.connectors.rate_limiter import SEARCH_ENDPOINT, RateLimitTracker
from mentionbot.connectors.solana import SolanaWalletClient, explorer_url
from mentionbot.connectors.twitter import TwitterClient

__all__ = [
    "SEARCH_ENDPOINT",
    "RateLimitError",
    "RateLimitTracker",
    "SocialClient",
    "SolanaWalletClient",
    "TransientInfraError",
    "TwitterClient",
    "explorer_url",
]
