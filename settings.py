"""
Application settings

Values are read from the environment once at startup and passed explicitly
to the pieces that need them.
"""

import os
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "changara"

    secret_key: str = "devsecret-change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    base_url: str = "http://localhost:9002"
    pastor_email: Optional[str] = None

    mpesa_consumer_key: Optional[str] = None
    mpesa_consumer_secret: Optional[str] = None
    mpesa_business_shortcode: Optional[str] = None
    mpesa_passkey: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_timeout: float = 30.0

    scripture_api_base: str = "https://bible-api.com"

    log_level: str = "INFO"
    port: int = 8000

    @property
    def mpesa_configured(self) -> bool:
        values = [
            self.mpesa_consumer_key,
            self.mpesa_consumer_secret,
            self.mpesa_business_shortcode,
            self.mpesa_passkey,
        ]
        return all(values) and self.mpesa_consumer_key != "YOUR_CONSUMER_KEY"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            database_name=os.getenv("DATABASE_NAME", defaults.database_name),
            secret_key=os.getenv("SECRET_KEY", defaults.secret_key),
            access_token_expire_minutes=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes)
            ),
            base_url=os.getenv("BASE_URL", defaults.base_url).rstrip("/"),
            pastor_email=(os.getenv("PASTOR_EMAIL") or "").lower() or None,
            mpesa_consumer_key=os.getenv("MPESA_CONSUMER_KEY"),
            mpesa_consumer_secret=os.getenv("MPESA_CONSUMER_SECRET"),
            mpesa_business_shortcode=os.getenv("MPESA_BUSINESS_SHORTCODE"),
            mpesa_passkey=os.getenv("MPESA_PASSKEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", defaults.openai_base_url).rstrip("/"),
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            openai_timeout=float(os.getenv("OPENAI_TIMEOUT", defaults.openai_timeout)),
            scripture_api_base=os.getenv("SCRIPTURE_API_BASE", defaults.scripture_api_base).rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            port=int(os.getenv("PORT", defaults.port)),
        )
