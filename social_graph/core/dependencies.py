from bson import ObjectId
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer

from social_graph.api.users.models import User
from social_graph.core.accesstoken import verify_access_token
from social_graph.services.social import SocialService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/facebook")


def get_social_service(request: Request) -> SocialService:
    return request.app.state.social


def parse_user_id(user_id: str) -> ObjectId:
    if not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=422, detail="Invalid user id")
    return ObjectId(user_id)


async def get_current_active_user(
    token: str = Depends(oauth2_scheme),
    social: SocialService = Depends(get_social_service),
) -> User:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    decoded_jwt = verify_access_token(token)
    if not decoded_jwt:
        raise credentials_exception
    user_id = decoded_jwt.get("sub")
    if user_id is None or not ObjectId.is_valid(user_id):
        raise credentials_exception
    user = await social.find_user(user_id)
    if user is None:
        raise credentials_exception
    return user
