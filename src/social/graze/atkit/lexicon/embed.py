"""app.bsky.embed: media attached to posts, as written in records and as rendered in views."""

from typing import Any, Dict, List, Optional

from social.graze.atkit.lexicon.actor import ProfileViewBasic
from social.graze.atkit.lexicon.repo import Blob, StrongRef
from social.graze.atkit.lexicon.union import LexiconModel, open_union


class AspectRatio(LexiconModel):
    width: int
    height: int


class Image(LexiconModel):
    image: Blob
    alt: str = ""
    aspect_ratio: Optional[AspectRatio] = None


class EmbedImages(LexiconModel):
    lexicon_type = "app.bsky.embed.images"

    images: List[Image]


class External(LexiconModel):
    uri: str
    title: str = ""
    description: str = ""
    thumb: Optional[Blob] = None


class EmbedExternal(LexiconModel):
    lexicon_type = "app.bsky.embed.external"

    external: External


class Caption(LexiconModel):
    lang: str
    file: Blob


class EmbedVideo(LexiconModel):
    lexicon_type = "app.bsky.embed.video"

    video: Blob
    captions: Optional[List[Caption]] = None
    alt: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None


class EmbedRecord(LexiconModel):
    lexicon_type = "app.bsky.embed.record"

    record: StrongRef


MediaEmbed = open_union(EmbedImages, EmbedVideo, EmbedExternal)


class EmbedRecordWithMedia(LexiconModel):
    lexicon_type = "app.bsky.embed.recordWithMedia"

    record: EmbedRecord
    media: MediaEmbed


PostEmbed = open_union(
    EmbedImages, EmbedVideo, EmbedExternal, EmbedRecord, EmbedRecordWithMedia
)


class ViewImage(LexiconModel):
    thumb: str
    fullsize: str
    alt: str = ""
    aspect_ratio: Optional[AspectRatio] = None


class EmbedImagesView(LexiconModel):
    lexicon_type = "app.bsky.embed.images#view"

    images: List[ViewImage]


class ViewExternal(LexiconModel):
    uri: str
    title: str = ""
    description: str = ""
    thumb: Optional[str] = None


class EmbedExternalView(LexiconModel):
    lexicon_type = "app.bsky.embed.external#view"

    external: ViewExternal


class EmbedVideoView(LexiconModel):
    lexicon_type = "app.bsky.embed.video#view"

    cid: str
    playlist: str
    thumbnail: Optional[str] = None
    alt: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None


class ViewRecord(LexiconModel):
    lexicon_type = "app.bsky.embed.record#viewRecord"

    uri: str
    cid: str
    author: ProfileViewBasic
    value: Dict[str, Any]
    indexed_at: str
    labels: Optional[List[Dict[str, Any]]] = None
    reply_count: Optional[int] = None
    repost_count: Optional[int] = None
    like_count: Optional[int] = None
    quote_count: Optional[int] = None
    embeds: Optional[List[open_union(lambda: EMBED_VIEW_VARIANTS)]] = None  # type: ignore[valid-type]


class ViewNotFound(LexiconModel):
    lexicon_type = "app.bsky.embed.record#viewNotFound"

    uri: str
    not_found: bool = True


class ViewBlocked(LexiconModel):
    lexicon_type = "app.bsky.embed.record#viewBlocked"

    uri: str
    blocked: bool = True
    author: Optional[Dict[str, Any]] = None


class ViewDetached(LexiconModel):
    lexicon_type = "app.bsky.embed.record#viewDetached"

    uri: str
    detached: bool = True


def _embedded_record_variants():
    from social.graze.atkit.lexicon.feed import GeneratorView
    from social.graze.atkit.lexicon.graph import ListView

    return (ViewRecord, ViewNotFound, ViewBlocked, ViewDetached, GeneratorView, ListView)


EmbeddedRecord = open_union(_embedded_record_variants)


class EmbedRecordView(LexiconModel):
    lexicon_type = "app.bsky.embed.record#view"

    record: EmbeddedRecord


MediaEmbedView = open_union(EmbedImagesView, EmbedVideoView, EmbedExternalView)


class EmbedRecordWithMediaView(LexiconModel):
    lexicon_type = "app.bsky.embed.recordWithMedia#view"

    record: EmbedRecordView
    media: MediaEmbedView


EMBED_VIEW_VARIANTS = (
    EmbedImagesView,
    EmbedVideoView,
    EmbedExternalView,
    EmbedRecordView,
    EmbedRecordWithMediaView,
)

EmbedViewType = open_union(*EMBED_VIEW_VARIANTS)
