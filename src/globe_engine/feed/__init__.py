"""Meteorite landings feed: query construction and HTTP fetch."""

from globe_engine.feed.client import DEFAULT_FEED_URL, FeedClient, FeedError
from globe_engine.feed.query import FilterInputError

__all__ = ["DEFAULT_FEED_URL", "FeedClient", "FeedError", "FilterInputError"]
