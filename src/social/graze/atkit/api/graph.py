"""app.bsky.graph"""

from typing import Optional

from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.xrpc import AuthMode, Endpoint, XRPCExecutor
from social.graze.atkit.lexicon.graph import (
    FollowersOutput,
    GetFollowsOutput,
    GetListOutput,
    GetSuggestedFollowsByActorOutput,
    ListsOutput,
)

GET_FOLLOWERS = Endpoint(
    "app.bsky.graph.getFollowers", auth=AuthMode.OPTIONAL, output=FollowersOutput
)
GET_FOLLOWS = Endpoint(
    "app.bsky.graph.getFollows", auth=AuthMode.OPTIONAL, output=GetFollowsOutput
)
GET_KNOWN_FOLLOWERS = Endpoint("app.bsky.graph.getKnownFollowers", output=FollowersOutput)
GET_LIST = Endpoint("app.bsky.graph.getList", auth=AuthMode.OPTIONAL, output=GetListOutput)
GET_LISTS = Endpoint("app.bsky.graph.getLists", auth=AuthMode.OPTIONAL, output=ListsOutput)
GET_LIST_BLOCKS = Endpoint("app.bsky.graph.getListBlocks", output=ListsOutput)
GET_SUGGESTED_FOLLOWS_BY_ACTOR = Endpoint(
    "app.bsky.graph.getSuggestedFollowsByActor",
    output=GetSuggestedFollowsByActorOutput,
)


class GraphAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    async def get_followers(
        self, actor: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> FollowersOutput:
        params = QueryItems().add("actor", actor).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_FOLLOWERS, params)

    async def get_follows(
        self, actor: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> GetFollowsOutput:
        params = QueryItems().add("actor", actor).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_FOLLOWS, params)

    async def get_known_followers(
        self, actor: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> FollowersOutput:
        """Followers of ``actor`` that the logged-in account also follows."""
        params = QueryItems().add("actor", actor).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_KNOWN_FOLLOWERS, params)

    async def get_list(
        self, list_uri: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> GetListOutput:
        params = QueryItems().add("list", list_uri).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_LIST, params)

    async def get_lists(
        self, actor: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> ListsOutput:
        params = QueryItems().add("actor", actor).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_LISTS, params)

    async def get_list_blocks(
        self, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> ListsOutput:
        params = QueryItems().add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_LIST_BLOCKS, params)

    async def get_suggested_follows_by_actor(
        self, actor: str
    ) -> GetSuggestedFollowsByActorOutput:
        return await self.executor.call(
            GET_SUGGESTED_FOLLOWS_BY_ACTOR, QueryItems().add("actor", actor)
        )
