"""Persisted AT Protocol sessions for the database credential store.

One row per store key. The serialized session, tokens included, lives in
``data`` and is Fernet-encrypted when the store is given an encryption key.
"""

from typing import Optional

from sqlalchemy import Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from social.graze.atkit.model.base import Base, storekey, str512, timestamp


class StoredSession(Base):
    """A credential store entry.

    Expiry timestamps are kept in the clear so that stale rows can be
    found without decrypting them.
    """

    __tablename__ = "atkit_sessions"

    key: Mapped[storekey]
    did: Mapped[str512]
    data: Mapped[str] = mapped_column(Text, nullable=False)
    access_token_expires_at: Mapped[Optional[timestamp]]
    refresh_token_expires_at: Mapped[Optional[timestamp]]
    updated_at: Mapped[timestamp]

    __table_args__ = (Index("idx_atkit_sessions_did", "did"),)
