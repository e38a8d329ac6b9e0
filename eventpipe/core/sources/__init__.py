"""External data sources."""

from eventpipe.core.sources.base import ChangeFeedSource, PullSource, Subscription
from eventpipe.core.sources.firebase import FirebaseChangeFeed
from eventpipe.core.sources.http_pull import EmailLogSource, SpreadsheetSource
from eventpipe.core.sources.memory import InMemoryChangeFeed, StaticPullSource

__all__ = [
    "ChangeFeedSource",
    "EmailLogSource",
    "FirebaseChangeFeed",
    "InMemoryChangeFeed",
    "PullSource",
    "SpreadsheetSource",
    "StaticPullSource",
    "Subscription",
]
