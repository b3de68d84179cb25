"""Configuration for the Play Timer service, read from the environment."""

import logging
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    storage_backend: Literal["memory", "file", "mongo", "jsonbin"] = "file"
    data_file: str = "./data.json"
    database_url: Optional[str] = None
    database_name: str = "play_timer"
    jsonbin_api_key: Optional[str] = None
    jsonbin_bin_id: Optional[str] = None
    jsonbin_base_url: str = "https://api.jsonbin.io/v3/b"

    # Validation bounds
    child_name_max_length: int = Field(30, ge=2)
    nickname_max_length: int = Field(30, ge=1)
    parent_name_max_length: int = Field(30, ge=1)
    # Lifetime cap on a session's extended duration, in minutes; None means uncapped
    max_session_duration: Optional[float] = Field(None, gt=0)

    write_lock_timeout: float = Field(30.0, gt=0)
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        env = {
            "storage_backend": os.getenv("STORAGE_BACKEND"),
            "data_file": os.getenv("DATA_FILE"),
            "database_url": os.getenv("DATABASE_URL"),
            "database_name": os.getenv("DATABASE_NAME"),
            "jsonbin_api_key": os.getenv("JSONBIN_API_KEY"),
            "jsonbin_bin_id": os.getenv("JSONBIN_BIN_ID"),
            "jsonbin_base_url": os.getenv("JSONBIN_BASE_URL"),
            "child_name_max_length": os.getenv("CHILD_NAME_MAX_LENGTH"),
            "nickname_max_length": os.getenv("NICKNAME_MAX_LENGTH"),
            "parent_name_max_length": os.getenv("PARENT_NAME_MAX_LENGTH"),
            "max_session_duration": os.getenv("MAX_SESSION_DURATION"),
            "write_lock_timeout": os.getenv("WRITE_LOCK_TIMEOUT"),
            "log_level": os.getenv("LOG_LEVEL"),
            "port": os.getenv("PORT"),
        }
        return cls(**{k: v for k, v in env.items() if v not in (None, "")})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
