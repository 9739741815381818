import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


@dataclass
class Settings:
    mongodb_uri: str = "mongodb://127.0.0.1:27017/bgmi"
    database_name: str = ""  # empty -> database named in the URI, else "bgmi"
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    # Reconnect backoff (seconds), doubled after each failed attempt
    retry_initial_sec: float = 1.0
    retry_max_sec: float = 30.0
    # Server selection timeout for each connection attempt (ms)
    timeout_ms: int = 5000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", cls.mongodb_uri),
            database_name=os.getenv("DATABASE_NAME", ""),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
            cors_origins=_origins(os.getenv("CORS_ORIGIN", "*")),
            retry_initial_sec=float(os.getenv("DB_RETRY_INITIAL_SEC", cls.retry_initial_sec)),
            retry_max_sec=float(os.getenv("DB_RETRY_MAX_SEC", cls.retry_max_sec)),
            timeout_ms=int(os.getenv("DB_TIMEOUT_MS", cls.timeout_ms)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
