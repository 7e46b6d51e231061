from pydantic import BaseModel


class FriendRequestCreate(BaseModel):
    user_id: str
