"""app.bsky.feed"""

from typing import Optional, Sequence

from social.graze.atkit.atproto.request import QueryItems, clamp
from social.graze.atkit.atproto.xrpc import AuthMode, Endpoint, XRPCExecutor
from social.graze.atkit.lexicon.feed import (
    FeedOutput,
    GetFeedGeneratorsOutput,
    GetLikesOutput,
    GetPostThreadOutput,
    GetPostsOutput,
    GetRepostedByOutput,
)

GET_TIMELINE = Endpoint("app.bsky.feed.getTimeline", output=FeedOutput)
GET_AUTHOR_FEED = Endpoint(
    "app.bsky.feed.getAuthorFeed", auth=AuthMode.OPTIONAL, output=FeedOutput
)
GET_FEED = Endpoint("app.bsky.feed.getFeed", auth=AuthMode.OPTIONAL, output=FeedOutput)
GET_POST_THREAD = Endpoint(
    "app.bsky.feed.getPostThread", auth=AuthMode.OPTIONAL, output=GetPostThreadOutput
)
GET_POSTS = Endpoint(
    "app.bsky.feed.getPosts", auth=AuthMode.OPTIONAL, output=GetPostsOutput
)
GET_LIKES = Endpoint(
    "app.bsky.feed.getLikes", auth=AuthMode.OPTIONAL, output=GetLikesOutput
)
GET_REPOSTED_BY = Endpoint(
    "app.bsky.feed.getRepostedBy", auth=AuthMode.OPTIONAL, output=GetRepostedByOutput
)
GET_FEED_GENERATORS = Endpoint(
    "app.bsky.feed.getFeedGenerators",
    auth=AuthMode.OPTIONAL,
    output=GetFeedGeneratorsOutput,
)

MAX_POSTS = 25
MAX_THREAD_DEPTH = 1000

AUTHOR_FEED_FILTERS = frozenset(
    {
        "posts_with_replies",
        "posts_no_replies",
        "posts_with_media",
        "posts_and_author_threads",
        "posts_with_video",
    }
)


class FeedAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    async def get_timeline(
        self,
        algorithm: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> FeedOutput:
        params = (
            QueryItems().add("algorithm", algorithm).add_limit(limit).add_cursor(cursor)
        )
        return await self.executor.call(GET_TIMELINE, params)

    async def get_author_feed(
        self,
        actor: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        filter: Optional[str] = None,
        include_pins: Optional[bool] = None,
    ) -> FeedOutput:
        """
        Posts and reposts by ``actor``.

        ``filter`` is one of ``AUTHOR_FEED_FILTERS``; the server applies ``posts_with_replies``
        when it is omitted.
        """
        if filter is not None and filter not in AUTHOR_FEED_FILTERS:
            raise ValueError(f"Unknown author feed filter: {filter}")
        params = (
            QueryItems()
            .add("actor", actor)
            .add_limit(limit)
            .add_cursor(cursor)
            .add("filter", filter)
            .add("includePins", include_pins)
        )
        return await self.executor.call(GET_AUTHOR_FEED, params)

    async def get_feed(
        self,
        feed: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> FeedOutput:
        params = QueryItems().add("feed", feed).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_FEED, params)

    async def get_post_thread(
        self,
        uri: str,
        depth: Optional[int] = None,
        parent_height: Optional[int] = None,
    ) -> GetPostThreadOutput:
        params = QueryItems().add("uri", uri)
        if depth is not None:
            params.add("depth", clamp(depth, 0, MAX_THREAD_DEPTH))
        if parent_height is not None:
            params.add("parentHeight", clamp(parent_height, 0, MAX_THREAD_DEPTH))
        return await self.executor.call(GET_POST_THREAD, params)

    async def get_posts(self, uris: Sequence[str]) -> GetPostsOutput:
        """Hydrate up to 25 posts; extra URIs are dropped."""
        params = QueryItems().extend("uris", uris, max_items=MAX_POSTS)
        return await self.executor.call(GET_POSTS, params)

    async def get_likes(
        self,
        uri: str,
        cid: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> GetLikesOutput:
        params = (
            QueryItems()
            .add("uri", uri)
            .add("cid", cid)
            .add_limit(limit)
            .add_cursor(cursor)
        )
        return await self.executor.call(GET_LIKES, params)

    async def get_reposted_by(
        self,
        uri: str,
        cid: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> GetRepostedByOutput:
        params = (
            QueryItems()
            .add("uri", uri)
            .add("cid", cid)
            .add_limit(limit)
            .add_cursor(cursor)
        )
        return await self.executor.call(GET_REPOSTED_BY, params)

    async def get_feed_generators(self, feeds: Sequence[str]) -> GetFeedGeneratorsOutput:
        params = QueryItems().extend("feeds", feeds)
        return await self.executor.call(GET_FEED_GENERATORS, params)
