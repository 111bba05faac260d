"""app.bsky.notification"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.actor import ProfileView
from social.graze.atkit.lexicon.union import LexiconModel


class Notification(LexiconModel):
    uri: str
    cid: str
    author: ProfileView
    reason: str
    record: Dict[str, Any]
    is_read: bool
    indexed_at: str
    reason_subject: Optional[str] = None
    labels: Optional[List[Dict[str, Any]]] = None


class ListNotificationsOutput(LexiconModel):
    notifications: List[Notification] = Field(default_factory=list)
    cursor: Optional[str] = None
    priority: Optional[bool] = None
    seen_at: Optional[str] = None


class GetUnreadCountOutput(LexiconModel):
    count: int = 0
