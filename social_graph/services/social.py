import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from social_graph.api.auth.facebook import FacebookClient
from social_graph.api.users.models import (
    Device,
    FriendRequest,
    Platform,
    User,
    to_object_id,
)
from social_graph.core.database import (
    FRIEND_REQUEST_COLLECTION,
    USER_COLLECTION,
    ConnectionManager,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_FIELDS = ("_id", "username", "display_name", "avatar_url", "metadata")
ONLINE_SECONDS = 40


def utcnow() -> datetime:
    # MongoDB hands back naive UTC datetimes
    return datetime.now(timezone.utc).replace(tzinfo=None)


def projection(fields: Iterable[str]) -> dict:
    return {field: 1 for field in fields}


class SocialService:
    """Friend requests, blocking, presence and Facebook login.

    Holds no state of its own: every call reads and writes through the
    ``users`` and ``friend_requests`` collections. Multi-step operations are
    not transactional; each step is idempotent so a retry converges.
    """

    def __init__(self, connection: ConnectionManager, facebook: FacebookClient, clock=utcnow):
        self.connection = connection
        self.facebook = facebook
        self.clock = clock

    @property
    def users(self):
        return self.connection.database[USER_COLLECTION]

    @property
    def friend_requests(self):
        return self.connection.database[FRIEND_REQUEST_COLLECTION]

    async def _find_users(self, query: dict, fields: Iterable[str]) -> List[User]:
        cursor = self.users.find(query, projection(fields))
        return [User.model_validate(doc) for doc in await cursor.to_list(length=None)]

    async def find_user(self, user_id) -> Optional[User]:
        doc = await self.users.find_one({"_id": to_object_id(user_id)})
        return User.model_validate(doc) if doc else None

    async def ping_user(self, user_id):
        await self.users.update_one(
            {"_id": to_object_id(user_id)},
            {"$set": {"updated_at": self.clock()}},
        )

    async def facebook_auth(self, access_token: str) -> User:
        profile = await self.facebook.get_profile(access_token)
        facebook_id = profile.id

        # fetch the caller's facebook friends that already have an account
        friend_ids = []
        if profile.friend_ids:
            existing = await self.users.find(
                {"facebook_id": {"$in": profile.friend_ids}}, {"_id": 1}
            ).to_list(length=None)
            friend_ids = [doc["_id"] for doc in existing]

        update = {
            "$setOnInsert": {
                "username": profile.name,
                "display_name": profile.short_name,
                "email": profile.email,
                "created_at": self.clock(),
            },
            "$set": {
                "avatar_url": profile.picture_url,
                "online": True,
            },
        }
        if friend_ids:
            update["$addToSet"] = {"friend_ids": {"$each": friend_ids}}
        await self.users.update_one({"facebook_id": facebook_id}, update, upsert=True)

        current_user = User.model_validate(
            await self.users.find_one({"facebook_id": facebook_id})
        )
        logger.debug(
            "Facebook user %s authenticated as %s (%d friends)",
            facebook_id, current_user.id, len(profile.friend_ids),
        )

        # friends without an account yet pick this up when they first log in
        await asyncio.gather(*[
            self.users.update_one(
                {"facebook_id": friend_facebook_id},
                {"$addToSet": {"friend_ids": current_user.id}},
            )
            for friend_facebook_id in profile.friend_ids
        ])

        return current_user

    async def assign_device_to_user(self, user: User, device_id: str, platform: Platform) -> bool:
        existing_device = next(
            (device for device in user.devices
             if device.id == device_id and device.platform == platform),
            None,
        )
        if existing_device is not None:
            return False

        device = Device(id=device_id, platform=platform)
        user.devices.append(device)
        await self.users.update_one(
            {"_id": user.id}, {"$addToSet": {"devices": device.model_dump()}}
        )
        return True

    async def send_friend_request(self, sender_id, receiver_id) -> bool:
        sender_id = to_object_id(sender_id)
        receiver_id = to_object_id(receiver_id)

        is_allowed_to_send = await self.users.find_one({
            "_id": receiver_id,
            "blocked_user_ids": {"$nin": [sender_id]},
        })
        if is_allowed_to_send is None:
            logger.debug("Friend request %s -> %s refused", sender_id, receiver_id)
            return False

        await self.friend_requests.update_one(
            {"sender": sender_id, "receiver": receiver_id},
            {"$setOnInsert": {"created_at": self.clock()}},
            upsert=True,
        )
        return True

    async def consume_friend_request(self, receiver_id, sender_id, accept: bool = True):
        receiver_id = to_object_id(receiver_id)
        sender_id = to_object_id(sender_id)

        if accept:
            await self.users.update_one(
                {"_id": receiver_id}, {"$addToSet": {"friend_ids": sender_id}}
            )
            await self.users.update_one(
                {"_id": sender_id}, {"$addToSet": {"friend_ids": receiver_id}}
            )
        await self.friend_requests.delete_many({"sender": sender_id, "receiver": receiver_id})

    async def block_user(self, user_id, blocked_user_id):
        user_id = to_object_id(user_id)
        blocked_user_id = to_object_id(blocked_user_id)

        await self.users.update_one({"_id": user_id}, {
            "$addToSet": {"blocked_user_ids": blocked_user_id},
            "$pull": {"friend_ids": blocked_user_id},
        })
        await self.users.update_one({"_id": blocked_user_id}, {
            "$pull": {"friend_ids": user_id},
        })
        await self.friend_requests.delete_one({"sender": blocked_user_id, "receiver": user_id})

    async def unblock_user(self, user_id, blocked_user_id):
        # only the unblocking side gets the friendship back
        blocked_user_id = to_object_id(blocked_user_id)
        await self.users.update_one({"_id": to_object_id(user_id)}, {
            "$addToSet": {"friend_ids": blocked_user_id},
            "$pull": {"blocked_user_ids": blocked_user_id},
        })

    async def get_friend_requests(self, user_id) -> List[FriendRequest]:
        cursor = self.friend_requests.find({"receiver": to_object_id(user_id)})
        return [FriendRequest.model_validate(doc) for doc in await cursor.to_list(length=None)]

    async def get_friend_requests_profile(
        self,
        friend_requests: List[FriendRequest],
        fields: Iterable[str] = DEFAULT_USER_FIELDS,
    ) -> List[User]:
        sender_ids = [request.sender for request in friend_requests]
        return await self._find_users({"_id": {"$in": sender_ids}}, fields)

    async def get_friends(self, user: User, fields: Iterable[str] = DEFAULT_USER_FIELDS) -> List[User]:
        return await self._find_users({"_id": {"$in": user.friend_ids}}, fields)

    async def get_online_friends(self, user: User, fields: Iterable[str] = DEFAULT_USER_FIELDS) -> List[User]:
        online_since = self.clock() - timedelta(seconds=ONLINE_SECONDS)
        return await self._find_users({
            "_id": {"$in": user.friend_ids},
            "updated_at": {"$gt": online_since},
        }, fields)
