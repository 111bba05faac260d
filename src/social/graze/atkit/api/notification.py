"""app.bsky.notification"""

from typing import Optional, Sequence

from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.xrpc import PROCEDURE, Endpoint, XRPCExecutor
from social.graze.atkit.lexicon.notification import (
    GetUnreadCountOutput,
    ListNotificationsOutput,
)
from social.graze.atkit.lexicon.union import LexiconModel

LIST_NOTIFICATIONS = Endpoint(
    "app.bsky.notification.listNotifications", output=ListNotificationsOutput
)
GET_UNREAD_COUNT = Endpoint(
    "app.bsky.notification.getUnreadCount", output=GetUnreadCountOutput
)
UPDATE_SEEN = Endpoint("app.bsky.notification.updateSeen", method=PROCEDURE)
REGISTER_PUSH = Endpoint("app.bsky.notification.registerPush", method=PROCEDURE)
UNREGISTER_PUSH = Endpoint("app.bsky.notification.unregisterPush", method=PROCEDURE)

PUSH_PLATFORMS = frozenset({"ios", "android", "web"})


class UpdateSeenInput(LexiconModel):
    seen_at: str


class PushRegistrationInput(LexiconModel):
    service_did: str
    token: str
    platform: str
    app_id: str


class NotificationAPI:
    def __init__(self, executor: XRPCExecutor) -> None:
        self.executor = executor

    async def list_notifications(
        self,
        reasons: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        priority: Optional[bool] = None,
        cursor: Optional[str] = None,
        seen_at: Optional[str] = None,
    ) -> ListNotificationsOutput:
        params = (
            QueryItems()
            .extend("reasons", reasons)
            .add_limit(limit)
            .add("priority", priority)
            .add_cursor(cursor)
            .add("seenAt", seen_at)
        )
        return await self.executor.call(LIST_NOTIFICATIONS, params)

    async def get_unread_count(
        self, priority: Optional[bool] = None, seen_at: Optional[str] = None
    ) -> GetUnreadCountOutput:
        params = QueryItems().add("priority", priority).add("seenAt", seen_at)
        return await self.executor.call(GET_UNREAD_COUNT, params)

    async def update_seen(self, seen_at: str) -> None:
        await self.executor.call(UPDATE_SEEN, body=UpdateSeenInput(seen_at=seen_at))

    async def register_push(
        self, service_did: str, token: str, platform: str, app_id: str
    ) -> None:
        if platform not in PUSH_PLATFORMS:
            raise ValueError(f"Unknown push platform: {platform}")
        await self.executor.call(
            REGISTER_PUSH,
            body=PushRegistrationInput(
                service_did=service_did, token=token, platform=platform, app_id=app_id
            ),
        )

    async def unregister_push(
        self, service_did: str, token: str, platform: str, app_id: str
    ) -> None:
        if platform not in PUSH_PLATFORMS:
            raise ValueError(f"Unknown push platform: {platform}")
        await self.executor.call(
            UNREGISTER_PUSH,
            body=PushRegistrationInput(
                service_did=service_did, token=token, platform=platform, app_id=app_id
            ),
        )
