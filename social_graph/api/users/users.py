from fastapi import APIRouter, Depends
from pydantic import BaseModel

from social_graph.api.users.models import Platform, User
from social_graph.core.dependencies import get_current_active_user, get_social_service
from social_graph.services.social import SocialService

router = APIRouter()


class DeviceRegistration(BaseModel):
    device_id: str
    platform: Platform


@router.get("/me")
async def get_me(user: User = Depends(get_current_active_user)):
    return user.public()


@router.post("/ping")
async def ping(
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    await social.ping_user(user.id)
    return {"message": "pong"}


@router.post("/devices")
async def register_device(
    device: DeviceRegistration,
    user: User = Depends(get_current_active_user),
    social: SocialService = Depends(get_social_service),
):
    added = await social.assign_device_to_user(user, device.device_id, device.platform)
    return {"added": added, "devices": [d.model_dump() for d in user.devices]}
