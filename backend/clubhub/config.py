"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'clubhub.db'}"


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    DATABASE_URL: str
    DB_LOCK_TIMEOUT_SECONDS: float
    FOLLOW_MAX_ATTEMPTS: int
    DEFAULT_PAGE_LIMIT: int
    MAX_PAGE_LIMIT: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.DB_LOCK_TIMEOUT_SECONDS = float(os.getenv("DB_LOCK_TIMEOUT_SECONDS", "30"))
        self.FOLLOW_MAX_ATTEMPTS = int(os.getenv("FOLLOW_MAX_ATTEMPTS", "3"))
        self.DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "10"))
        self.MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.FOLLOW_MAX_ATTEMPTS < 1:
            raise RuntimeError("FOLLOW_MAX_ATTEMPTS must be >= 1")
        if self.DEFAULT_PAGE_LIMIT < 1 or self.MAX_PAGE_LIMIT < 1:
            raise RuntimeError("page limits must be >= 1")
        if self.DEFAULT_PAGE_LIMIT > self.MAX_PAGE_LIMIT:
            raise RuntimeError("DEFAULT_PAGE_LIMIT cannot exceed MAX_PAGE_LIMIT")
        if self.DB_LOCK_TIMEOUT_SECONDS <= 0:
            raise RuntimeError("DB_LOCK_TIMEOUT_SECONDS must be positive")


settings = Settings()
