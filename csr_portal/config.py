"""Application settings and validation."""

import os


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    HOSTED_REST_URL: str
    HOSTED_REST_KEY: str
    ALLOW_DEV_CORS: bool
    PDF_FETCH_TIMEOUT_SECONDS: float
    MAX_PDF_BYTES: int
    LOGO_DEV_TOKEN: str
    LOGIN_MAX_FAILURES: int
    LOGIN_FAILURE_WINDOW_SECONDS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("CSR_DATABASE_URL", "")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        # When set, the auth lookups are forwarded to the hosted REST API instead of the local DB.
        self.HOSTED_REST_URL = os.getenv("HOSTED_REST_URL", "").rstrip("/")
        self.HOSTED_REST_KEY = os.getenv("HOSTED_REST_KEY", "")
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.PDF_FETCH_TIMEOUT_SECONDS = float(os.getenv("PDF_FETCH_TIMEOUT_SECONDS", "30"))
        self.MAX_PDF_BYTES = int(os.getenv("MAX_PDF_BYTES", str(25 * 1024 * 1024)))  # 25 MB default
        self.LOGO_DEV_TOKEN = os.getenv("LOGO_DEV_TOKEN", "")
        self.LOGIN_MAX_FAILURES = int(os.getenv("LOGIN_MAX_FAILURES", "10"))
        self.LOGIN_FAILURE_WINDOW_SECONDS = int(os.getenv("LOGIN_FAILURE_WINDOW_SECONDS", "300"))
        self._validate()

    @property
    def hosted_rest_enabled(self) -> bool:
        return bool(self.HOSTED_REST_URL and self.HOSTED_REST_KEY)

    def _validate(self):
        if self.ENV != "dev" and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.HOSTED_REST_URL and not self.HOSTED_REST_KEY:
            raise RuntimeError("HOSTED_REST_KEY is required when HOSTED_REST_URL is set")
        if self.LOGIN_MAX_FAILURES < 1:
            raise RuntimeError("LOGIN_MAX_FAILURES must be at least 1")


settings = Settings()
