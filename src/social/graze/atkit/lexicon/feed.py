"""app.bsky.feed: posts, feeds and threads."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.actor import ProfileView, ProfileViewBasic
from social.graze.atkit.lexicon.embed import EmbedViewType, PostEmbed
from social.graze.atkit.lexicon.repo import StrongRef
from social.graze.atkit.lexicon.union import LexiconModel, open_union


class PostViewerState(LexiconModel):
    repost: Optional[str] = None
    like: Optional[str] = None
    thread_muted: Optional[bool] = None
    reply_disabled: Optional[bool] = None
    embedding_disabled: Optional[bool] = None
    pinned: Optional[bool] = None


class PostView(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#postView"

    uri: str
    cid: str
    author: ProfileViewBasic
    record: Dict[str, Any]
    indexed_at: str
    embed: Optional[EmbedViewType] = None
    reply_count: Optional[int] = None
    repost_count: Optional[int] = None
    like_count: Optional[int] = None
    quote_count: Optional[int] = None
    viewer: Optional[PostViewerState] = None
    labels: Optional[List[Dict[str, Any]]] = None
    threadgate: Optional[Dict[str, Any]] = None


class NotFoundPost(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#notFoundPost"

    uri: str
    not_found: bool = True


class BlockedAuthor(LexiconModel):
    did: str
    viewer: Optional[Dict[str, Any]] = None


class BlockedPost(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#blockedPost"

    uri: str
    blocked: bool = True
    author: BlockedAuthor


ReplyTarget = open_union(PostView, NotFoundPost, BlockedPost)


class PostReplyRef(LexiconModel):
    root: StrongRef
    parent: StrongRef


class PostRecord(LexiconModel):
    """An ``app.bsky.feed.post`` record, as written with ``RepoAPI.create_record``."""

    lexicon_type = "app.bsky.feed.post"

    text: str
    created_at: str
    reply: Optional[PostReplyRef] = None
    embed: Optional[PostEmbed] = None
    langs: Optional[List[str]] = None
    facets: Optional[List[Dict[str, Any]]] = None
    labels: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None


class LikeRecord(LexiconModel):
    lexicon_type = "app.bsky.feed.like"

    subject: StrongRef
    created_at: str


class RepostRecord(LexiconModel):
    lexicon_type = "app.bsky.feed.repost"

    subject: StrongRef
    created_at: str


class ReplyRef(LexiconModel):
    root: ReplyTarget
    parent: ReplyTarget
    grandparent_author: Optional[ProfileViewBasic] = None


class ReasonRepost(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#reasonRepost"

    by: ProfileViewBasic
    indexed_at: str


class ReasonPin(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#reasonPin"


FeedReason = open_union(ReasonRepost, ReasonPin)


class FeedViewPost(LexiconModel):
    post: PostView
    reply: Optional[ReplyRef] = None
    reason: Optional[FeedReason] = None
    feed_context: Optional[str] = None


class FeedOutput(LexiconModel):
    """A page of ``getTimeline``, ``getAuthorFeed`` or ``getFeed``."""

    feed: List[FeedViewPost] = Field(default_factory=list)
    cursor: Optional[str] = None


ThreadNode = open_union(lambda: (ThreadViewPost, NotFoundPost, BlockedPost))


class ThreadViewPost(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#threadViewPost"

    post: PostView
    parent: Optional[ThreadNode] = None
    replies: Optional[List[ThreadNode]] = None


class GetPostThreadOutput(LexiconModel):
    thread: ThreadNode
    threadgate: Optional[Dict[str, Any]] = None


class GetPostsOutput(LexiconModel):
    posts: List[PostView] = Field(default_factory=list)


class Like(LexiconModel):
    indexed_at: str
    created_at: str
    actor: ProfileView


class GetLikesOutput(LexiconModel):
    uri: str
    likes: List[Like] = Field(default_factory=list)
    cid: Optional[str] = None
    cursor: Optional[str] = None


class GetRepostedByOutput(LexiconModel):
    uri: str
    reposted_by: List[ProfileView] = Field(default_factory=list)
    cid: Optional[str] = None
    cursor: Optional[str] = None


class GeneratorView(LexiconModel):
    lexicon_type = "app.bsky.feed.defs#generatorView"

    uri: str
    cid: str
    did: str
    creator: ProfileView
    display_name: str
    indexed_at: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    like_count: Optional[int] = None
    accepts_interactions: Optional[bool] = None
    content_mode: Optional[str] = None
    viewer: Optional[Dict[str, Any]] = None
    labels: Optional[List[Dict[str, Any]]] = None


class GetFeedGeneratorsOutput(LexiconModel):
    feeds: List[GeneratorView] = Field(default_factory=list)
