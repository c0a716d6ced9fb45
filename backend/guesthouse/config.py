"""Application settings and validation."""

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    ENV: str
    LOG_LEVEL: str
    DATABASE_URL: str
    DB_ISOLATION_LEVEL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    CORS_ORIGINS: list
    MAX_UPLOAD_BYTES: int
    MAX_IMAGE_BYTES: int
    MAX_PDF_BYTES: int
    SAS_EXPIRE_MINUTES: int
    STORAGE_BACKEND: str
    DELETE_BLOBS_ON_ROUTE_DELETE: bool
    FEEDBACK_RATE_LIMIT_PER_MIN: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DATABASE_URL = os.getenv("DATABASE_URL", "")
        # empty means driver default (SQLite serializes writers on its own)
        self.DB_ISOLATION_LEVEL = os.getenv("DB_ISOLATION_LEVEL", "").strip().upper()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "12"))
        self.ALLOW_INSECURE_JWT = _flag("ALLOW_INSECURE_JWT", "false")
        raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
        self.CORS_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
        self.MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))
        self.MAX_PDF_BYTES = int(os.getenv("MAX_PDF_BYTES", str(10 * 1024 * 1024)))
        self.SAS_EXPIRE_MINUTES = int(os.getenv("SAS_EXPIRE_MINUTES", "10"))
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory").lower()
        self.STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "public")
        self.STORAGE_REGION = os.getenv("STORAGE_REGION", "")
        self.STORAGE_ENDPOINT = os.getenv("STORAGE_ENDPOINT", "")
        self.STORAGE_ACCESS_KEY_ID = os.getenv("STORAGE_ACCESS_KEY_ID", "")
        self.STORAGE_SECRET_ACCESS_KEY = os.getenv("STORAGE_SECRET_ACCESS_KEY", "")
        self.STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "http://127.0.0.1:10000/public")
        self.DELETE_BLOBS_ON_ROUTE_DELETE = _flag("DELETE_BLOBS_ON_ROUTE_DELETE", "false")
        self.FEEDBACK_RATE_LIMIT_PER_MIN = int(os.getenv("FEEDBACK_RATE_LIMIT_PER_MIN", "5"))
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.STORAGE_BACKEND not in ("memory", "s3"):
            raise RuntimeError(f"unsupported STORAGE_BACKEND: {self.STORAGE_BACKEND}")
        if self.STORAGE_BACKEND == "s3" and not self.STORAGE_BUCKET:
            raise RuntimeError("STORAGE_BUCKET is required for the s3 storage backend")
        if self.FEEDBACK_RATE_LIMIT_PER_MIN < 1:
            raise RuntimeError("FEEDBACK_RATE_LIMIT_PER_MIN must be >= 1")


settings = Settings()
