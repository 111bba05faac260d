"""app.bsky.actor"""

from typing import Optional, Sequence, Union

from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.xrpc import (
    PROCEDURE,
    AuthMode,
    Endpoint,
    XRPCExecutor,
)
from social.graze.atkit.lexicon.actor import (
    GetPreferencesOutput,
    GetProfilesOutput,
    GetSuggestionsOutput,
    ProfileViewDetailed,
    PutPreferencesInput,
    SearchActorsOutput,
    SearchActorsTypeaheadOutput,
)
from social.graze.atkit.lexicon.union import LexiconModel, UnknownVariant

GET_PROFILE = Endpoint(
    "app.bsky.actor.getProfile", auth=AuthMode.OPTIONAL, output=ProfileViewDetailed
)
GET_PROFILES = Endpoint(
    "app.bsky.actor.getProfiles", auth=AuthMode.OPTIONAL, output=GetProfilesOutput
)
GET_PREFERENCES = Endpoint("app.bsky.actor.getPreferences", output=GetPreferencesOutput)
PUT_PREFERENCES = Endpoint("app.bsky.actor.putPreferences", method=PROCEDURE)
SEARCH_ACTORS = Endpoint(
    "app.bsky.actor.searchActors", auth=AuthMode.OPTIONAL, output=SearchActorsOutput
)
SEARCH_ACTORS_TYPEAHEAD = Endpoint(
    "app.bsky.actor.searchActorsTypeahead",
    auth=AuthMode.OPTIONAL,
    output=SearchActorsTypeaheadOutput,
)
GET_SUGGESTIONS = Endpoint("app.bsky.actor.getSuggestions", output=GetSuggestionsOutput)

MAX_PROFILES = 25


class ActorAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    async def get_profile(self, actor: str) -> ProfileViewDetailed:
        return await self.executor.call(GET_PROFILE, QueryItems().add("actor", actor))

    async def get_profiles(self, actors: Sequence[str]) -> GetProfilesOutput:
        """Fetch up to 25 profiles; extra actors are dropped."""
        params = QueryItems().extend("actors", actors, max_items=MAX_PROFILES)
        return await self.executor.call(GET_PROFILES, params)

    async def get_preferences(self) -> GetPreferencesOutput:
        return await self.executor.call(GET_PREFERENCES)

    async def put_preferences(
        self, preferences: Sequence[Union[LexiconModel, UnknownVariant]]
    ) -> None:
        """
        Replace the account's preferences.

        Preferences of types this SDK does not know are written back exactly as they were read.
        """
        await self.executor.call(
            PUT_PREFERENCES, body=PutPreferencesInput(preferences=list(preferences))
        )

    async def search_actors(
        self,
        query: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> SearchActorsOutput:
        params = QueryItems().add("q", query).add_limit(limit).add_cursor(cursor)
        return await self.executor.call(SEARCH_ACTORS, params)

    async def search_actors_typeahead(
        self, query: str, limit: Optional[int] = None
    ) -> SearchActorsTypeaheadOutput:
        params = QueryItems().add("q", query).add_limit(limit)
        return await self.executor.call(SEARCH_ACTORS_TYPEAHEAD, params)

    async def get_suggestions(
        self, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> GetSuggestionsOutput:
        params = QueryItems().add_limit(limit).add_cursor(cursor)
        return await self.executor.call(GET_SUGGESTIONS, params)
