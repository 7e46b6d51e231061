import logging

from fastapi import APIRouter, Depends, HTTPException

from social_graph.api.auth.facebook import ExternalAuthError
from social_graph.api.auth.models import FacebookLogin
from social_graph.core.accesstoken import create_access_token
from social_graph.core.dependencies import get_social_service
from social_graph.services.social import SocialService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/facebook")
async def facebook_login(
    login: FacebookLogin, social: SocialService = Depends(get_social_service)
):
    try:
        user = await social.facebook_auth(login.access_token)
    except ExternalAuthError as e:
        logger.info("Facebook login refused: %s", e)
        raise HTTPException(status_code=401, detail=str(e))

    access_token = create_access_token({"sub": str(user.id)})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user.public(),
    }
