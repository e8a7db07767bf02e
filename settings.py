from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    DATABASE_URL: Optional[str] = None
    DATABASE_NAME: Optional[str] = None

    # Multi-document transactions need a replica set; standalone servers
    # fall back to sequential writes with compensation.
    USE_TRANSACTIONS: bool = False

    # overflow: submissions past maxAttendees are accepted (implicit waitlist)
    # enforce: the counter increment is refused once the item is full
    CAPACITY_POLICY: Literal["overflow", "enforce"] = "overflow"

    LOG_LEVEL: str = "INFO"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]


settings = Settings()
