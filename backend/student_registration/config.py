"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    JWT_ISSUER: str
    JWT_AUDIENCE: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    SEED_CATALOG: bool
    ADMIN_USERNAME: str
    ADMIN_EMAIL: str
    ADMIN_PASSWORD: str
    STUDENT_CODE_MAX_ATTEMPTS: int
    LOGIN_RATE_LIMIT_PER_MIN: int
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'registration.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.JWT_ISSUER = os.getenv("JWT_ISSUER", "StudentRegistrationAPI")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "StudentRegistrationClient")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.SEED_CATALOG = os.getenv("SEED_CATALOG", "true").lower() == "true"
        self.ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@university.edu")
        # empty means "do not bootstrap an admin account"
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
        self.STUDENT_CODE_MAX_ATTEMPTS = int(os.getenv("STUDENT_CODE_MAX_ATTEMPTS", "50"))
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "30"))
        self.LOGIN_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be a positive number of hours")
        if self.STUDENT_CODE_MAX_ATTEMPTS < 1:
            raise RuntimeError("STUDENT_CODE_MAX_ATTEMPTS must be at least 1")


settings = Settings()
