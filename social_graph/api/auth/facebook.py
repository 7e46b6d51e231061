import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field

from social_graph.core.config import settings

logger = logging.getLogger(__name__)

PROFILE_FIELDS = "id,name,short_name,email,picture,friends"


class ExternalAuthError(Exception):
    """Facebook refused the access token, or could not be reached."""


class FacebookProfile(BaseModel):
    id: str
    name: Optional[str] = None
    short_name: Optional[str] = None
    email: Optional[str] = None
    picture_url: Optional[str] = None
    friend_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_graph(cls, data: dict) -> "FacebookProfile":
        picture = (data.get("picture") or {}).get("data") or {}
        friends = (data.get("friends") or {}).get("data") or []
        return cls(
            id=data["id"],
            name=data.get("name"),
            short_name=data.get("short_name"),
            email=data.get("email"),
            picture_url=picture.get("url"),
            friend_ids=[friend["id"] for friend in friends],
        )


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"Facebook returned HTTP {response.status_code}"


class FacebookClient:
    def __init__(self, graph_url=None, timeout=None, transport=None):
        self.graph_url = (graph_url or settings.FACEBOOK_GRAPH_URL).rstrip("/")
        self.timeout = settings.FACEBOOK_TIMEOUT if timeout is None else timeout
        self.transport = transport

    async def get_profile(self, access_token: str) -> FacebookProfile:
        """Exchanges ``access_token`` for the caller's profile and friends."""
        try:
            async with httpx.AsyncClient(
                base_url=self.graph_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.get(
                    "/me",
                    params={"fields": PROFILE_FIELDS, "access_token": access_token},
                )
        except httpx.HTTPError as e:
            logger.warning("Facebook request failed: %s", e)
            raise ExternalAuthError(f"Facebook request failed: {e}") from e

        if not response.is_success:
            raise ExternalAuthError(_error_message(response))

        data = response.json()
        if "id" not in data:
            raise ExternalAuthError("Facebook profile has no id")
        return FacebookProfile.from_graph(data)
