from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod" / "test"
    SERVICE_NAME: str = "storefront"
    ENABLE_ADMIN: bool = True
    RATE_LIMIT_ENABLED: bool = True
    SEED_ROLES_ON_STARTUP: bool = True
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"

admin_config = Settings()
