from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment (or a local .env file)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    APP_NAME: str = "Social Graph"
    LOG_LEVEL: str = "INFO"

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DATABASE: str = "social"
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    # indexes are managed out of band, never on connect
    MONGO_ENSURE_INDEXES: bool = False

    # Facebook Graph API
    FACEBOOK_GRAPH_URL: str = "https://graph.facebook.com"
    FACEBOOK_TIMEOUT: float = 10.0

    # Access tokens
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24


settings = Settings()
