"""app.bsky.unspecced"""

from typing import Optional

from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.xrpc import AuthMode, Endpoint, XRPCExecutor
from social.graze.atkit.lexicon.unspecced import (
    GetPopularFeedGeneratorsOutput,
    GetSuggestedFeedsOutput,
    GetTrendingTopicsOutput,
)

GET_POPULAR_FEED_GENERATORS = Endpoint(
    "app.bsky.unspecced.getPopularFeedGenerators",
    auth=AuthMode.OPTIONAL,
    output=GetPopularFeedGeneratorsOutput,
)
GET_TRENDING_TOPICS = Endpoint(
    "app.bsky.unspecced.getTrendingTopics",
    auth=AuthMode.OPTIONAL,
    output=GetTrendingTopicsOutput,
)
GET_SUGGESTED_FEEDS = Endpoint(
    "app.bsky.unspecced.getSuggestedFeeds",
    auth=AuthMode.OPTIONAL,
    output=GetSuggestedFeedsOutput,
)


class UnspeccedAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    async def get_popular_feed_generators(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        query: Optional[str] = None,
    ) -> GetPopularFeedGeneratorsOutput:
        params = QueryItems().add_limit(limit).add_cursor(cursor).add("query", query)
        return await self.executor.call(GET_POPULAR_FEED_GENERATORS, params)

    async def get_trending_topics(
        self, viewer: Optional[str] = None, limit: Optional[int] = None
    ) -> GetTrendingTopicsOutput:
        params = QueryItems().add("viewer", viewer).add_limit(limit, maximum=25)
        return await self.executor.call(GET_TRENDING_TOPICS, params)

    async def get_suggested_feeds(
        self, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> GetSuggestedFeedsOutput:
        params = QueryItems().add_limit(limit, maximum=25).add_cursor(cursor)
        return await self.executor.call(GET_SUGGESTED_FEEDS, params)
