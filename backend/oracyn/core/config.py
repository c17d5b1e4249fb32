from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv
import os

# Load environment variables from .env file into the process environment.
# This allows configuration without hardcoding secrets in code.
load_dotenv()

DEFAULT_ALLOWED_UPLOAD_TYPES = (
    "application/pdf",
    "text/plain",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

DELIVERY_MODES = ("sync", "async")
STORAGE_BACKENDS = ("local", "inline")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """
    Centralized application configuration.

    Values are read from environment variables when the instance is
    created. Keyword arguments override individual values, which is how
    tests build isolated configurations without touching the environment.
    """

    def __init__(self, **overrides):
        # ------------------------
        # Application
        # ------------------------
        self.APP_NAME: str = os.getenv("APP_NAME", "Oracyn API")
        self.APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", "*")

        # ------------------------
        # Database configuration
        # ------------------------
        # SQLAlchemy-compatible database connection URL
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./oracyn.db")
        self.AUTO_CREATE_TABLES: bool = _env_bool("AUTO_CREATE_TABLES", "true")

        # ------------------------
        # Authentication / JWT configuration
        # ------------------------
        # Default secrets are for local development only.
        self.JWT_SECRET: str = os.getenv("JWT_SECRET", "unsafe-secret")
        self.JWT_REFRESH_SECRET: str = os.getenv(
            "JWT_REFRESH_SECRET", "unsafe-refresh-secret"
        )
        self.JWT_ALGORITHM: str = "HS256"
        self.JWT_ISSUER: str = os.getenv("JWT_ISSUER", "oracyn-api")
        self.JWT_AUDIENCE: str = os.getenv("JWT_AUDIENCE", "oracyn-client")

        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
            os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
        )
        self.REFRESH_TOKEN_EXPIRE_DAYS: int = int(
            os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")
        )
        self.REFRESH_COOKIE_NAME: str = os.getenv("REFRESH_COOKIE_NAME", "refreshToken")
        self.VERIFICATION_TOKEN_EXPIRE_HOURS: int = int(
            os.getenv("VERIFICATION_TOKEN_EXPIRE_HOURS", "24")
        )
        self.RESET_TOKEN_EXPIRE_MINUTES: int = int(
            os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60")
        )

        # ------------------------
        # AI service configuration
        # ------------------------
        self.AI_SERVICE_URL: str = os.getenv("AI_SERVICE_URL", "http://localhost:8000")
        self.AI_SERVICE_SECRET: Optional[str] = os.getenv("AI_SERVICE_SECRET")
        self.AI_SERVICE_TOKEN_EXPIRE_MINUTES: int = int(
            os.getenv("AI_SERVICE_TOKEN_EXPIRE_MINUTES", "5")
        )
        # Timeouts in seconds; ingestion of large files gets a longer budget
        self.AI_SERVICE_TIMEOUT: float = float(os.getenv("AI_SERVICE_TIMEOUT", "30"))
        self.AI_DOCUMENT_TIMEOUT: float = float(os.getenv("AI_DOCUMENT_TIMEOUT", "300"))

        # ------------------------
        # Orchestration
        # ------------------------
        # "sync": reply persisted before the response; "async": reply written
        # by a background continuation after the response is sent.
        self.MESSAGE_MODE: str = os.getenv("MESSAGE_MODE", "sync").lower()
        self.INGESTION_MODE: str = os.getenv("INGESTION_MODE", "async").lower()
        self.CHAT_HISTORY_LIMIT: int = int(os.getenv("CHAT_HISTORY_LIMIT", "10"))

        # ------------------------
        # Uploads / storage
        # ------------------------
        self.STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local").lower()
        self.DATA_DIR: Path = Path(
            os.getenv("ORACYN_DATA_DIR", str(Path.home() / ".oracyn_data"))
        )
        self.MAX_UPLOAD_BYTES: int = int(
            os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))
        )
        self.ALLOWED_UPLOAD_TYPES: List[str] = _env_list(
            "ALLOWED_UPLOAD_TYPES", ",".join(DEFAULT_ALLOWED_UPLOAD_TYPES)
        )

        for name, value in overrides.items():
            if not hasattr(self, name):
                raise AttributeError(f"Unknown setting: {name}")
            setattr(self, name, value)

        self._validate()

    def _validate(self):
        if self.MESSAGE_MODE not in DELIVERY_MODES:
            raise ValueError(f"MESSAGE_MODE must be one of {DELIVERY_MODES}")
        if self.INGESTION_MODE not in DELIVERY_MODES:
            raise ValueError(f"INGESTION_MODE must be one of {DELIVERY_MODES}")
        if self.STORAGE_BACKEND not in STORAGE_BACKENDS:
            raise ValueError(f"STORAGE_BACKEND must be one of {STORAGE_BACKENDS}")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def ai_service_secret(self) -> str:
        # Service tokens fall back to the user-token secret when no
        # dedicated key is configured.
        return self.AI_SERVICE_SECRET or self.JWT_SECRET
