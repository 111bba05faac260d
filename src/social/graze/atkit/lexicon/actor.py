"""
app.bsky.actor: profiles and preferences.

Preferences are the canonical open union: clients routinely meet preference types newer than
themselves and must write them back untouched when saving.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.union import LexiconModel, open_union


class ViewerState(LexiconModel):
    muted: Optional[bool] = None
    blocked_by: Optional[bool] = None
    blocking: Optional[str] = None
    following: Optional[str] = None
    followed_by: Optional[str] = None


class ProfileAssociated(LexiconModel):
    lists: Optional[int] = None
    feedgens: Optional[int] = None
    starter_packs: Optional[int] = None
    labeler: Optional[bool] = None


class ProfileViewBasic(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#profileViewBasic"

    did: str
    handle: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    associated: Optional[ProfileAssociated] = None
    viewer: Optional[ViewerState] = None
    labels: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[str] = None


class ProfileView(ProfileViewBasic):
    lexicon_type = "app.bsky.actor.defs#profileView"

    description: Optional[str] = None
    indexed_at: Optional[str] = None


class ProfileViewDetailed(ProfileView):
    lexicon_type = "app.bsky.actor.defs#profileViewDetailed"

    banner: Optional[str] = None
    followers_count: Optional[int] = None
    follows_count: Optional[int] = None
    posts_count: Optional[int] = None
    pinned_post: Optional[Dict[str, Any]] = None


class AdultContentPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#adultContentPref"

    enabled: bool = False


class ContentLabelPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#contentLabelPref"

    label: str
    visibility: str
    labeler_did: Optional[str] = None


class SavedFeedsPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#savedFeedsPref"

    pinned: List[str] = Field(default_factory=list)
    saved: List[str] = Field(default_factory=list)
    timeline_index: Optional[int] = None


class SavedFeed(LexiconModel):
    id: str
    type: str
    value: str
    pinned: bool


class SavedFeedsPrefV2(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#savedFeedsPrefV2"

    items: List[SavedFeed] = Field(default_factory=list)


class PersonalDetailsPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#personalDetailsPref"

    birth_date: Optional[str] = None


class FeedViewPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#feedViewPref"

    feed: str
    hide_replies: Optional[bool] = None
    hide_replies_by_unfollowed: Optional[bool] = None
    hide_replies_by_like_count: Optional[int] = None
    hide_reposts: Optional[bool] = None
    hide_quote_posts: Optional[bool] = None


class ThreadViewPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#threadViewPref"

    sort: Optional[str] = None
    prioritize_followed_users: Optional[bool] = None


class InterestsPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#interestsPref"

    tags: List[str] = Field(default_factory=list)


class MutedWord(LexiconModel):
    value: str
    targets: List[str]
    id: Optional[str] = None
    actor_target: Optional[str] = None
    expires_at: Optional[str] = None


class MutedWordsPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#mutedWordsPref"

    items: List[MutedWord] = Field(default_factory=list)


class HiddenPostsPref(LexiconModel):
    lexicon_type = "app.bsky.actor.defs#hiddenPostsPref"

    items: List[str] = Field(default_factory=list)


PREFERENCE_VARIANTS = (
    AdultContentPref,
    ContentLabelPref,
    SavedFeedsPref,
    SavedFeedsPrefV2,
    PersonalDetailsPref,
    FeedViewPref,
    ThreadViewPref,
    InterestsPref,
    MutedWordsPref,
    HiddenPostsPref,
)

Preference = open_union(*PREFERENCE_VARIANTS)


class GetPreferencesOutput(LexiconModel):
    preferences: List[Preference] = Field(default_factory=list)


class PutPreferencesInput(LexiconModel):
    preferences: List[Preference]


class GetProfilesOutput(LexiconModel):
    profiles: List[ProfileViewDetailed] = Field(default_factory=list)


class SearchActorsOutput(LexiconModel):
    actors: List[ProfileView] = Field(default_factory=list)
    cursor: Optional[str] = None


class SearchActorsTypeaheadOutput(LexiconModel):
    actors: List[ProfileViewBasic] = Field(default_factory=list)


class GetSuggestionsOutput(LexiconModel):
    actors: List[ProfileView] = Field(default_factory=list)
    cursor: Optional[str] = None
