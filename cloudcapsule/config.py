import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    db_url: str = "sqlite:///./capsule.db"
    secret_key: str = "CHANGE_THIS_TO_REAL_SECRET"
    token_expire_min: int = 60 * 24 * 7
    reset_expire_min: int = 60
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 5 * 1024 * 1024
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_url=os.environ.get("CAPSULE_DB_URL", cls.db_url),
            secret_key=os.environ.get("CAPSULE_SECRET_KEY", cls.secret_key),
            token_expire_min=int(os.environ.get("CAPSULE_TOKEN_EXPIRE_MIN", cls.token_expire_min)),
            reset_expire_min=int(os.environ.get("CAPSULE_RESET_EXPIRE_MIN", cls.reset_expire_min)),
            upload_dir=os.environ.get("CAPSULE_UPLOAD_DIR", cls.upload_dir),
            max_upload_bytes=int(os.environ.get("CAPSULE_MAX_UPLOAD_BYTES", cls.max_upload_bytes)),
            log_level=os.environ.get("CAPSULE_LOG_LEVEL", cls.log_level),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )
