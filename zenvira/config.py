import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_SECRET = "change-me"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "zenvira"
    auth_secret: str = DEFAULT_SECRET
    access_token_expire_minutes: int = 7 * 24 * 60
    trusted_origin: str = "http://localhost:3000"
    use_transactions: bool = False
    bcrypt_rounds: int = 12
    log_level: str = "INFO"
    port: int = 5000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        settings = cls(
            database_url=os.getenv("DATABASE_URL", cls.model_fields["database_url"].default),
            database_name=os.getenv("DATABASE_NAME", cls.model_fields["database_name"].default),
            auth_secret=os.getenv("AUTH_SECRET", DEFAULT_SECRET),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60)),
            trusted_origin=os.getenv("TRUSTED_ORIGIN", cls.model_fields["trusted_origin"].default),
            use_transactions=_env_bool("DB_USE_TRANSACTIONS", False),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", 12)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            port=int(os.getenv("PORT", 5000)),
        )
        if settings.auth_secret == DEFAULT_SECRET:
            logger.warning("AUTH_SECRET is not set; using an insecure development secret")
        return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
