from pydantic import BaseModel


class FacebookLogin(BaseModel):
    access_token: str
