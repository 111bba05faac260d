"""
com.atproto.repo

Records are written as open union members: a ``LexiconModel`` with a ``lexicon_type`` is sent
with its ``$type`` tag, and mappings or ``UnknownVariant`` values are sent as given. The
collection defaults to the record's ``$type`` and the repository to the session's DID.
"""

from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import Field

from social.graze.atkit.atproto.request import guess_mime_type
from social.graze.atkit.atproto.xrpc import PROCEDURE, Endpoint, XRPCExecutor
from social.graze.atkit.errors import MissingActiveSessionError
from social.graze.atkit.lexicon.repo import (
    DeleteRecordOutput,
    UploadBlobOutput,
    WriteRecordOutput,
)
from social.graze.atkit.lexicon.union import (
    DISCRIMINATOR,
    LexiconModel,
    UnknownVariant,
    encode_union,
)

UPLOAD_BLOB = Endpoint(
    "com.atproto.repo.uploadBlob", method=PROCEDURE, output=UploadBlobOutput
)
CREATE_RECORD = Endpoint(
    "com.atproto.repo.createRecord", method=PROCEDURE, output=WriteRecordOutput
)
PUT_RECORD = Endpoint(
    "com.atproto.repo.putRecord", method=PROCEDURE, output=WriteRecordOutput
)
DELETE_RECORD = Endpoint(
    "com.atproto.repo.deleteRecord", method=PROCEDURE, output=DeleteRecordOutput
)

RECORD_KEY_MAX_LENGTH = 512

RecordType = Union[LexiconModel, UnknownVariant, Mapping[str, Any]]


class CreateRecordInput(LexiconModel):
    repo: str
    collection: str
    rkey: Optional[str] = None
    validate_: Optional[bool] = Field(default=None, alias="validate")
    record: Dict[str, Any]
    swap_commit: Optional[str] = None


class PutRecordInput(LexiconModel):
    repo: str
    collection: str
    rkey: str
    validate_: Optional[bool] = Field(default=None, alias="validate")
    record: Dict[str, Any]
    swap_record: Optional[str] = None
    swap_commit: Optional[str] = None


class DeleteRecordInput(LexiconModel):
    repo: str
    collection: str
    rkey: str
    swap_record: Optional[str] = None
    swap_commit: Optional[str] = None


def encode_record(
    record: RecordType, collection: Optional[str]
) -> Tuple[Dict[str, Any], str]:
    """
    Encode ``record`` and work out its collection.

    Raises:
        ValueError: The record has no ``$type`` and no collection was given.
    """
    encoded = encode_union(record)
    record_type = encoded.get(DISCRIMINATOR)
    if collection is None:
        if not isinstance(record_type, str):
            raise ValueError("Record has no $type; pass the collection explicitly")
        collection = record_type
    elif record_type is None:
        encoded = {DISCRIMINATOR: collection, **encoded}
    return encoded, collection


class RepoAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    def _repo(self, repo: Optional[str]) -> str:
        if repo is not None:
            return repo
        session = self.executor.sessions.session
        if session is None:
            raise MissingActiveSessionError("No active session")
        return session.did

    async def upload_blob(
        self, data: bytes, filename: str, mime_type: Optional[str] = None
    ) -> UploadBlobOutput:
        """Upload raw bytes. The MIME type is guessed from ``filename`` unless given."""
        return await self.executor.call(
            UPLOAD_BLOB,
            body=data,
            content_type=mime_type or guess_mime_type(filename),
        )

    async def create_record(
        self,
        record: RecordType,
        collection: Optional[str] = None,
        repo: Optional[str] = None,
        rkey: Optional[str] = None,
        validate: Optional[bool] = None,
        swap_commit: Optional[str] = None,
    ) -> WriteRecordOutput:
        """
        Write a new record. Record keys longer than 512 characters are truncated.

        Raises:
            MissingActiveSessionError: ``repo`` was omitted and no session is active.
            ValueError: The collection cannot be determined.
        """
        encoded, collection = encode_record(record, collection)
        body = CreateRecordInput(
            repo=self._repo(repo),
            collection=collection,
            rkey=rkey[:RECORD_KEY_MAX_LENGTH] if rkey is not None else None,
            validate_=validate,
            record=encoded,
            swap_commit=swap_commit,
        )
        return await self.executor.call(CREATE_RECORD, body=body)

    async def put_record(
        self,
        rkey: str,
        record: RecordType,
        collection: Optional[str] = None,
        repo: Optional[str] = None,
        validate: Optional[bool] = None,
        swap_record: Optional[str] = None,
        swap_commit: Optional[str] = None,
    ) -> WriteRecordOutput:
        """Write ``record`` at ``rkey``, replacing whatever is there."""
        encoded, collection = encode_record(record, collection)
        body = PutRecordInput(
            repo=self._repo(repo),
            collection=collection,
            rkey=rkey,
            validate_=validate,
            record=encoded,
            swap_record=swap_record,
            swap_commit=swap_commit,
        )
        return await self.executor.call(PUT_RECORD, body=body)

    async def delete_record(
        self,
        collection: str,
        rkey: str,
        repo: Optional[str] = None,
        swap_record: Optional[str] = None,
        swap_commit: Optional[str] = None,
    ) -> DeleteRecordOutput:
        body = DeleteRecordInput(
            repo=self._repo(repo),
            collection=collection,
            rkey=rkey,
            swap_record=swap_record,
            swap_commit=swap_commit,
        )
        return await self.executor.call(DELETE_RECORD, body=body)
