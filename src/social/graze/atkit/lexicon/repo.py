"""com.atproto.repo: references between records and uploaded blobs."""

from typing import Any, Dict, Optional

from pydantic import Field

from social.graze.atkit.lexicon.union import LexiconModel


class StrongRef(LexiconModel):
    lexicon_type = "com.atproto.repo.strongRef"

    uri: str
    cid: str


class Blob(LexiconModel):
    """
    A reference to uploaded binary data, as returned by ``uploadBlob`` and embedded in records.

    ``ref`` is the CID link object (``{"$link": "..."}``).
    """

    lexicon_type = "blob"

    ref: Optional[Dict[str, Any]] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None

    @property
    def cid(self) -> Optional[str]:
        if self.ref is None:
            return None
        return self.ref.get("$link")


class UploadBlobOutput(LexiconModel):
    blob: Blob = Field(default_factory=Blob)


class CommitMeta(LexiconModel):
    cid: str
    rev: str


class WriteRecordOutput(LexiconModel):
    """Output of ``createRecord`` and ``putRecord``."""

    uri: str
    cid: str
    commit: Optional[CommitMeta] = None
    validation_status: Optional[str] = None

    @property
    def ref(self) -> StrongRef:
        return StrongRef(uri=self.uri, cid=self.cid)


class DeleteRecordOutput(LexiconModel):
    commit: Optional[CommitMeta] = None
