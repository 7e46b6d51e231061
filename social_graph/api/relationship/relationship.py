from fastapi import APIRouter, Depends, HTTPException

from social_graph.api.users.models import User
from social_graph.core.dependencies import (
    get_current_active_user,
    get_social_service,
    parse_user_id,
)
from social_graph.services.social import DEFAULT_USER_FIELDS, SocialService
from .models import FriendRequestCreate

router = APIRouter()


def profiles(users):
    return [user.public(DEFAULT_USER_FIELDS) for user in users]


@router.get("")
async def get_friends(
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    return profiles(await social.get_friends(user))


@router.get("/online")
async def get_online_friends(
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    return profiles(await social.get_online_friends(user))


@router.get("/requests")
async def get_friend_requests(
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    requests = await social.get_friend_requests(user.id)
    return profiles(await social.get_friend_requests_profile(requests))


@router.post("/requests")
async def send_friend_request(
    request: FriendRequestCreate,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    receiver_id = parse_user_id(request.user_id)
    if receiver_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot send a friend request to yourself")
    if not await social.send_friend_request(user.id, receiver_id):
        raise HTTPException(status_code=403, detail="Not allowed to send a friend request")
    return {"message": "Friend request sent successfully"}


async def _consume(user: User, sender_id: str, social: SocialService, accept: bool):
    sender_id = parse_user_id(sender_id)
    pending = await social.get_friend_requests(user.id)
    if not any(request.sender == sender_id for request in pending):
        raise HTTPException(status_code=404, detail="No friend request found")
    await social.consume_friend_request(user.id, sender_id, accept)


@router.put("/requests/{sender_id}")
async def accept_friend_request(
    sender_id: str,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    await _consume(user, sender_id, social, accept=True)
    return {"message": "Friend request accepted"}


@router.delete("/requests/{sender_id}")
async def reject_friend_request(
    sender_id: str,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    await _consume(user, sender_id, social, accept=False)
    return {"message": "Friend request rejected"}


@router.post("/block/{user_id}")
async def block_user(
    user_id: str,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    await social.block_user(user.id, parse_user_id(user_id))
    return {"message": "User blocked"}


@router.delete("/block/{user_id}")
async def unblock_user(
    user_id: str,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    await social.unblock_user(user.id, parse_user_id(user_id))
    return {"message": "User unblocked"}
