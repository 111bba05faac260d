"""app.bsky.graph: follows and lists."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.actor import ProfileView
from social.graze.atkit.lexicon.union import LexiconModel

CURATE_LIST = "app.bsky.graph.defs#curatelist"
MOD_LIST = "app.bsky.graph.defs#modlist"
REFERENCE_LIST = "app.bsky.graph.defs#referencelist"


class ListView(LexiconModel):
    lexicon_type = "app.bsky.graph.defs#listView"

    uri: str
    cid: str
    creator: ProfileView
    name: str
    purpose: str
    indexed_at: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    list_item_count: Optional[int] = None
    viewer: Optional[Dict[str, Any]] = None
    labels: Optional[List[Dict[str, Any]]] = None


class ListItemView(LexiconModel):
    uri: str
    subject: ProfileView


class FollowersOutput(LexiconModel):
    """``getFollowers`` and ``getKnownFollowers``."""

    subject: ProfileView
    followers: List[ProfileView] = Field(default_factory=list)
    cursor: Optional[str] = None


class GetFollowsOutput(LexiconModel):
    subject: ProfileView
    follows: List[ProfileView] = Field(default_factory=list)
    cursor: Optional[str] = None


class GetListOutput(LexiconModel):
    list_view: ListView = Field(alias="list")
    items: List[ListItemView] = Field(default_factory=list)
    cursor: Optional[str] = None


class ListsOutput(LexiconModel):
    """``getLists`` and ``getListBlocks``."""

    lists: List[ListView] = Field(default_factory=list)
    cursor: Optional[str] = None


class GetSuggestedFollowsByActorOutput(LexiconModel):
    suggestions: List[ProfileView] = Field(default_factory=list)
    is_fallback: Optional[bool] = None
    rec_id: Optional[int] = None
