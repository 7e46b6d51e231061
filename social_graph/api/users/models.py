from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    WithJsonSchema,
)


def to_object_id(value) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValueError(f"{value!r} is not a valid ObjectId")


PyObjectId = Annotated[
    ObjectId,
    PlainValidator(to_object_id),
    PlainSerializer(str, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string"}),
]


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"


class Device(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    platform: Platform


class User(BaseModel):
    """A document of the ``users`` collection.

    Only ``_id`` is required so that projected queries validate into the
    same type; fields left out of a projection keep their defaults.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: PyObjectId = Field(alias="_id")
    username: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    facebook_id: Optional[str] = None
    devices: List[Device] = Field(default_factory=list)
    friend_ids: List[PyObjectId] = Field(default_factory=list)
    blocked_user_ids: List[PyObjectId] = Field(default_factory=list)
    online: bool = False
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def public(self, fields: Optional[Iterable[str]] = None) -> dict:
        """JSON-ready view restricted to ``fields`` (stored key names)."""
        if fields is None:
            return self.model_dump(mode="json", exclude={"facebook_id", "email", "devices"})
        include = {"id" if field == "_id" else field for field in fields}
        return self.model_dump(mode="json", include=include)


class FriendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    sender: PyObjectId
    receiver: PyObjectId
    created_at: Optional[datetime] = None
